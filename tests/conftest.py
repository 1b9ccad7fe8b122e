import jax.numpy as jnp
import pytest

from orbitax.config import set_dtype


@pytest.fixture(autouse=True)
def _ensure_float64():
    """Set float64 precision before every test.

    With pytest-xdist each worker process imports orbitax afresh; event
    location and orbit determination tests assume double precision, so it
    is re-asserted for every test in case one lowered it.
    """
    set_dtype(jnp.float64)
