from flask import Blueprint

bp = Blueprint("core", __name__)
# routes register logging and error handlers on import
from . import routes  # noqa: E402,F401
