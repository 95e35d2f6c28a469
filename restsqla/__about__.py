__version__ = "0.1.0"
__description__ = "restsqla : association-aware REST resources for SqlAlchemy and Flask"
