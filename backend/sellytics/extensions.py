# Overview: Flask extension instances for database, migrations and the sales data store.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.data_store import DataStore

db = SQLAlchemy()
migrate = Migrate()
datastore = DataStore(db)
