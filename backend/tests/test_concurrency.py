"""
Concurrency tests.

run_with_retry is exercised directly with injected failures; the threaded
tests run real sales against a file-backed SQLite database so two
terminals genuinely contend for the write lock.
"""

import threading

import pytest
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from gemstrack import create_app
from gemstrack.extensions import db
from gemstrack.services import document_service, inventory_service, sales_service, settings_service
from gemstrack.services.concurrency import RETRY_EXHAUSTED_MESSAGE, run_with_retry
from gemstrack.validation import ConflictError, PersistenceError, ValidationError

from conftest import DEFAULT_TEST_RATES, TEST_CONFIG, WORKED_EXAMPLE_RING


class Flaky:
    """Callable that raises `error` for the first `failures` calls, then returns "ok"."""

    def __init__(self, error, failures):
        self.error = error
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_retries_stale_data_then_succeeds(db_session):
    func = Flaky(StaleDataError("version mismatch"), failures=2)

    assert run_with_retry(func, attempts=3) == "ok"
    assert func.calls == 3


def test_exhausted_contention_is_a_conflict(db_session):
    func = Flaky(StaleDataError("version mismatch"), failures=10)

    with pytest.raises(ConflictError) as excinfo:
        run_with_retry(func, attempts=3)

    assert excinfo.value.message == RETRY_EXHAUSTED_MESSAGE == "operation failed, please retry"
    assert func.calls == 3


def test_locked_database_is_a_conflict(db_session):
    func = Flaky(OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked")), failures=10)

    with pytest.raises(ConflictError):
        run_with_retry(func, attempts=2)


def test_unreachable_database_is_a_persistence_error(db_session):
    func = Flaky(OperationalError("SELECT 1", {}, Exception("disk I/O error")), failures=10)

    with pytest.raises(PersistenceError) as excinfo:
        run_with_retry(func, attempts=2)

    assert excinfo.value.status_code == 503


def test_lost_connection_is_a_persistence_error(db_session):
    func = Flaky(DBAPIError("SELECT 1", {}, Exception("gone"), connection_invalidated=True), failures=1)

    with pytest.raises(PersistenceError):
        run_with_retry(func)
    assert func.calls == 1


def test_business_errors_are_not_retried(db_session):
    func = Flaky(ValidationError("bad input"), failures=1)

    with pytest.raises(ValidationError):
        run_with_retry(func, attempts=3)
    assert func.calls == 1


# =============================================================================
# THREADED (file-backed SQLite)
# =============================================================================

@pytest.fixture
def file_app(tmp_path):
    config = dict(TEST_CONFIG)
    config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{tmp_path / 'gemstrack.db'}"
    config["TRANSACTION_RETRY_ATTEMPTS"] = 5
    app = create_app(config)

    with app.app_context():
        db.create_all()
        inventory_service.ensure_default_categories()
        settings_service.ensure_default_rates()
        document_service.ensure_sequences()
        settings_service.set_rates(DEFAULT_TEST_RATES)

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


def _stock(app, count):
    with app.app_context():
        return [inventory_service.add_product(dict(WORKED_EXAMPLE_RING)).sku for _ in range(count)]


def _sell_in_thread(app, sku, results, errors):
    with app.app_context():
        try:
            cart = [inventory_service.item_for_cart(sku)]
            results.append(sales_service.create_invoice(cart).id)
        except ConflictError as exc:
            errors.append(exc)
        finally:
            db.session.remove()


def _run_threads(app, skus):
    results, errors = [], []
    threads = [threading.Thread(target=_sell_in_thread, args=(app, sku, results, errors)) for sku in skus]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results, errors


def test_concurrent_sales_get_consecutive_invoice_ids(file_app):
    skus = _stock(file_app, 4)

    results, errors = _run_threads(file_app, skus)

    assert errors == []
    assert sorted(results) == ["INV-000001", "INV-000002", "INV-000003", "INV-000004"]
    with file_app.app_context():
        assert document_service.peek_sequence("invoice") == 4
        assert inventory_service.list_products()["count"] == 0


def test_same_piece_sold_twice_concurrently_sells_once(file_app):
    (sku,) = _stock(file_app, 1)

    results, errors = _run_threads(file_app, [sku, sku])

    assert len(results) + len(errors) == 2
    assert results == ["INV-000001"]
    assert len(errors) == 1
    with file_app.app_context():
        assert document_service.peek_sequence("invoice") == 1
        assert inventory_service.get_sold_product(sku).invoice_id == "INV-000001"
