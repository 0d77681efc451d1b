from hackhub.db.base_class import Base  # noqa: F401

# import models so Base.metadata knows every table (alembic + create_all)
from hackhub.models import enrollment, event, team, user  # noqa: F401,E402
