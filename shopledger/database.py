"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.orm.util import identity_key
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT keys on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntegerPK = BigInteger().with_variant(Integer(), 'sqlite')

# Global session and engine
engine = None
db_session = None


def _engine_options(database_uri, echo):
    """Pool options per backend; SQLite has no connection pool sizing."""
    if database_uri.startswith('sqlite'):
        options = {
            'echo': echo,
            'connect_args': {'check_same_thread': False},
        }
        if database_uri in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection so every session sees the same in-memory DB
            options['poolclass'] = StaticPool
        return options

    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )

    if engine.dialect.name == 'sqlite':
        @event.listens_for(engine, 'connect')
        def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_schema():
    """Create all tables for the registered models (used by CLI and tests)."""
    import shopledger.models  # noqa: F401 - registers mappers on Base
    Base.metadata.create_all(bind=engine)


def drop_schema():
    """Drop all tables."""
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


def expire_cached(session, model, pk, *attrs):
    """
    Expire an already-loaded row after an UPDATE statement changed it.

    Conditional updates run with synchronize_session=False so their rowcount
    stays exact; this makes the next attribute access read the new values.
    """
    obj = session.identity_map.get(identity_key(model, pk))
    if obj is not None:
        session.expire(obj, list(attrs) or None)
