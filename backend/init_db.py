"""Initialize database (create tables). Run: python backend/init_db.py"""
from app.database import init_models


def init():
    init_models()


if __name__ == '__main__':
    print('Initializing DB...')
    init()
    print('DB initialized.')
