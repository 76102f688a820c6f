"""
Circuit breaker for the free secondary odds provider.

Uses pybreaker. After fail_max consecutive failures the breaker opens and
ESPN requests fail immediately until reset_timeout elapses, so a sync that
falls back to ESPN for every game does not keep hammering a service that is
down.

Circuit Breaker States:
- CLOSED: Requests pass through normally
- OPEN: Requests fail immediately (after fail_max failures)
- HALF_OPEN: One request allowed to test if service has recovered
"""
from pybreaker import CircuitBreaker, CircuitBreakerError

# Default circuit breaker configuration
DEFAULT_FAIL_MAX = 5  # Number of failures before opening circuit
DEFAULT_RESET_TIMEOUT = 60  # Seconds before attempting to close circuit


def create_breaker(name: str, fail_max: int = DEFAULT_FAIL_MAX, reset_timeout: int = DEFAULT_RESET_TIMEOUT) -> CircuitBreaker:
    return CircuitBreaker(fail_max=fail_max, reset_timeout=reset_timeout, name=name)


espn_api_breaker = create_breaker("espn_api")


def get_breaker_state(breaker: CircuitBreaker) -> str:
    """
    Get the current state of a circuit breaker.

    Returns:
        State string: 'closed', 'open', or 'half-open'
    """
    return breaker.current_state


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerError",
    "create_breaker",
    "espn_api_breaker",
    "get_breaker_state",
]
