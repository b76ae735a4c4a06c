# extensions.py

from flask_sqlalchemy import SQLAlchemy

# Single db handle shared by models, repositories and the app factory.
# Bound to an application in create_app().
db = SQLAlchemy()
