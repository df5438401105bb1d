from citysim.challenges.baseline import run_to_end_of_day
from citysim.metrics.stats import from_ledger

PSRC = "weekday_typical_traffic_from_psrc"


def test_reproducibility(sim_config):
    ledger1, engine1 = run_to_end_of_day("montlake", PSRC, 99, config=sim_config)
    ledger2, engine2 = run_to_end_of_day("montlake", PSRC, 99, config=sim_config)

    assert ledger1.to_frame().equals(ledger2.to_frame())
    assert list(engine1.bus_segments()) == list(engine2.bus_segments())
    assert from_ledger(ledger1) == from_ledger(ledger2)


def test_seed_changes_the_day(sim_config):
    ledger1, _ = run_to_end_of_day("montlake", PSRC, 1, config=sim_config)
    ledger2, _ = run_to_end_of_day("montlake", PSRC, 2, config=sim_config)
    assert ledger1.all() != ledger2.all()
