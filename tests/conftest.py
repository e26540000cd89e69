"""Test configuration for pytest.

This module imports fixtures that should be available to all tests.
"""

# Import fixtures
from tests.fixtures.common import (  # noqa
    eth_chain_config,
    sol_chain_config,
    detection_config,
    monitor_config,
    scoring_config,
    launch_config,
    mock_evm_client,
    mock_solana_client,
    mock_market_client,
    store,
    fanout,
    sample_block,
    sample_solana_block,
)
