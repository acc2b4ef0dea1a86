# extensions.py

from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_bcrypt import Bcrypt
from flask_mail import Mail

# Single source of truth for the db object; bound to an app in create_app()
db = SQLAlchemy()

# Authentication extensions
login_manager = LoginManager()
bcrypt = Bcrypt()

# Outbound mail for invitations
mail = Mail()
