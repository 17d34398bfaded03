"""
Pytest fixtures for the liquidity kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (no external services needed)
- Kernel services wired on one session (``components``)
- ``LiquidityPool`` facades built on the same database (``make_pool``)
- Terms builders, a deterministic clock and a role registry
- JSON log capture

Environment Variables:
- LIQUIDITY_TEST_DATABASE_URL: run against another database (e.g. a
  PostgreSQL URL) instead of in-memory SQLite. The schema is dropped and
  recreated for every test.
"""

import json
import logging
import os
from io import StringIO

import pytest
from sqlalchemy.orm import sessionmaker

from liquidity_kernel.db.engine import build_engine, create_tables, drop_tables
from liquidity_kernel.domain.authorization import RoleRegistry
from liquidity_kernel.domain.clock import DeterministicClock
from liquidity_kernel.domain.fees import PlatformFeeSplitter
from liquidity_kernel.domain.terms import (
    AdminTerms,
    CalendarTerms,
    CoverTerms,
    LiquidityTerms,
    PayPeriodUnit,
    PoolTerms,
    TranchesPolicyKind,
)
from liquidity_kernel.domain.values import JUNIOR_TRANCHE, SENIOR_TRANCHE
from liquidity_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from liquidity_kernel.services.pool_components import (
    PoolComponents,
    build_pool_components,
    grant_internal_roles,
)
from liquidity_services import LiquidityPool

POOL_ID = "test-pool"
POOL_OWNER = "pool-owner"
OPERATOR = "operator"
TREASURY = "pool-owner-treasury"
EA = "evaluation-agent"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture liquidity_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, enabled_pool):
            enabled_pool.refresh(POOL_OWNER)
            logs = captured_logs()
            assert any(r["message"] == "pool_refreshed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("liquidity_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: property-based and long-running scenario tests"
    )


# =============================================================================
# Terms builders
# =============================================================================


def make_liquidity_terms(**overrides) -> LiquidityTerms:
    values = dict(
        liquidity_cap=10_000_000,
        max_senior_junior_ratio=4,
        tranches_policy=TranchesPolicyKind.RISK_ADJUSTED,
        fixed_senior_yield_in_bps=0,
        tranches_risk_adjustment_in_bps=0,
        withdrawal_lockout_period_in_days=0,
        allow_redemption_cancellation=True,
        min_deposit_amount=0,
        max_lenders_per_tranche=100,
    )
    values.update(overrides)
    return LiquidityTerms(**values)


def make_cover_terms(cover_id: str, **overrides) -> CoverTerms:
    values = dict(
        cover_id=cover_id,
        cover_rate_per_loss_in_bps=10_000,
        cover_cap_per_loss=1_000_000,
        max_liquidity=1_000_000,
        max_percent_of_pool_value_in_bps=0,
        min_liquidity=0,
        risk_yield_multiplier_in_bps=0,
        min_deposit_amount=0,
    )
    values.update(overrides)
    return CoverTerms(**values)


def make_admin_terms(**overrides) -> AdminTerms:
    values = dict(
        pool_owner_treasury=TREASURY,
        evaluation_agent=EA,
        admin_cover_id="admin",
        liquidity_rate_in_bps_by_pool_owner=0,
        liquidity_rate_in_bps_by_ea=0,
        pool_owner_min_cover_assets=10_000,
        ea_min_cover_assets=10_000,
    )
    values.update(overrides)
    return AdminTerms(**values)


def make_pool_terms(
    *,
    pool_id: str = POOL_ID,
    liquidity: LiquidityTerms | None = None,
    covers: tuple[CoverTerms, ...] | None = None,
    admin: AdminTerms | None = None,
    calendar: CalendarTerms | None = None,
    platform_fee_in_bps: int = 0,
) -> PoolTerms:
    """Two covers by default: "borrower" (most junior) then "admin"."""
    if covers is None:
        covers = (make_cover_terms("borrower"), make_cover_terms("admin"))
    return PoolTerms(
        pool_id=pool_id,
        liquidity=liquidity or make_liquidity_terms(),
        admin=admin or make_admin_terms(),
        covers=covers,
        calendar=calendar or CalendarTerms(PayPeriodUnit.DAY, 1),
        platform_fee_in_bps=platform_fee_in_bps,
    )


@pytest.fixture
def pool_terms() -> PoolTerms:
    return make_pool_terms()


@pytest.fixture
def terms_factory():
    """The terms builders, for tests that need non-default terms."""

    class _Factory:
        liquidity = staticmethod(make_liquidity_terms)
        cover = staticmethod(make_cover_terms)
        admin = staticmethod(make_admin_terms)
        pool = staticmethod(make_pool_terms)

    return _Factory


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """A fresh database per test with every kernel table created."""
    url = os.environ.get("LIQUIDITY_TEST_DATABASE_URL", "sqlite:///:memory:")
    eng = build_engine(url)
    if not url.startswith("sqlite"):
        drop_tables(eng)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """A session for service-level tests. Never committed."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    """Starts at 2024-01-01T12:00:00Z."""
    return DeterministicClock()


@pytest.fixture
def roles() -> RoleRegistry:
    registry = RoleRegistry(pool_owners=[POOL_OWNER], operators=[OPERATOR])
    grant_internal_roles(registry, POOL_ID)
    return registry


# =============================================================================
# Service fixtures (one session, no facade)
# =============================================================================


def _enable_components(built: PoolComponents) -> PoolComponents:
    terms = built.pool.terms
    admin = terms.admin
    if terms.covers:
        cover = built.cover(admin.admin_cover_id)
        for provider, minimum in (
            (admin.pool_owner_treasury, admin.pool_owner_min_cover_assets),
            (admin.evaluation_agent, admin.ea_min_cover_assets),
        ):
            cover.add_cover_provider(POOL_OWNER, provider)
            if minimum:
                built.ledger.mint(provider, minimum)
                cover.deposit_cover(provider, minimum)
    built.pool.enable_pool(POOL_OWNER)
    built.epochs.start_first_epoch()
    return built


@pytest.fixture
def components_factory(session, roles, clock):
    """
    Build every kernel service for arbitrary terms on ``session``.

    ``enable=True`` also funds the admin cover providers, turns the pool ON
    and opens epoch 1.
    """

    def _build(terms: PoolTerms, enable: bool = False) -> PoolComponents:
        if terms.pool_id != POOL_ID:
            grant_internal_roles(roles, terms.pool_id)
        built = build_pool_components(
            session,
            terms,
            authorizer=roles,
            clock=clock,
            fee_splitter=PlatformFeeSplitter(terms.platform_fee_in_bps),
        )
        built.pool.initialize_pool()
        if enable:
            _enable_components(built)
        return built

    return _build


@pytest.fixture
def components(components_factory, pool_terms):
    """Every kernel service for ``pool_terms`` on ``session``; pool row created (OFF)."""
    return components_factory(pool_terms)


@pytest.fixture
def enabled_components(components):
    """``components`` with admin cover providers funded, the pool ON and epoch 1 open."""
    return _enable_components(components)


@pytest.fixture
def service_lend():
    """Approve, fund and deposit a lender through the vault services."""

    def _lend(components, tranche: int, lender: str, amount: int) -> int:
        vault = components.vaults[tranche]
        vault.add_approved_lender(OPERATOR, lender)
        components.ledger.mint(lender, amount)
        return vault.deposit(lender, amount)

    return _lend


# =============================================================================
# Facade fixtures
# =============================================================================


@pytest.fixture
def make_pool(session_factory, roles, clock):
    """Factory for an initialized (OFF) ``LiquidityPool`` on the test database."""

    def _make(terms: PoolTerms | None = None, **kwargs) -> LiquidityPool:
        terms = terms or make_pool_terms()
        if terms.pool_id != POOL_ID:
            grant_internal_roles(roles, terms.pool_id)
        pool = LiquidityPool(
            terms, session_factory=session_factory, authorizer=roles, clock=clock, **kwargs
        )
        pool.initialize()
        return pool

    return _make


@pytest.fixture
def enable_pool():
    """Seed the admin cover with its required providers and turn the pool ON."""

    def _enable(pool: LiquidityPool) -> LiquidityPool:
        admin = pool.terms.admin
        if pool.terms.covers:
            cover_id = admin.admin_cover_id
            for provider, minimum in (
                (admin.pool_owner_treasury, admin.pool_owner_min_cover_assets),
                (admin.evaluation_agent, admin.ea_min_cover_assets),
            ):
                pool.add_cover_provider(POOL_OWNER, cover_id, provider)
                if minimum:
                    pool.fund(provider, minimum)
                    pool.deposit_cover(cover_id, provider, minimum)
        pool.enable_pool(POOL_OWNER)
        return pool

    return _enable


@pytest.fixture
def enabled_pool(make_pool, enable_pool) -> LiquidityPool:
    return enable_pool(make_pool())


@pytest.fixture
def lend():
    """Approve, fund and deposit a lender through the facade. Returns shares."""

    def _lend(
        pool: LiquidityPool, tranche: int, lender: str, amount: int, reinvest_yield: bool = True
    ) -> int:
        pool.add_approved_lender(OPERATOR, tranche, lender, reinvest_yield)
        pool.fund(lender, amount)
        return pool.deposit(tranche, lender, amount)

    return _lend


@pytest.fixture
def funded_pool(enabled_pool, lend) -> LiquidityPool:
    """Enabled pool with junior 100,000 and senior 200,000 from two lenders."""
    lend(enabled_pool, JUNIOR_TRANCHE, "junior-lender", 100_000)
    lend(enabled_pool, SENIOR_TRANCHE, "senior-lender", 200_000)
    return enabled_pool
