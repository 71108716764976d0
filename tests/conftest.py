"""
Shared fixtures: an in-memory SQLite database with the Bokun cache schema.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bokun_sync.database import Base
from bokun_sync import models  # noqa: F401
from bokun_sync.models import BokunProduct


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def add_product(db):
    """Insert a product mapping: add_product("12345", "NIGHT_TOUR", is_active=True)"""
    def _add(bokun_product_id: str, local_tour_type: str, is_active: bool = True) -> BokunProduct:
        product = BokunProduct(
            bokun_product_id=bokun_product_id,
            local_tour_type=local_tour_type,
            is_active=is_active,
        )
        db.add(product)
        db.commit()
        return product
    return _add
