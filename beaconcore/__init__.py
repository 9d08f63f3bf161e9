"""beaconcore: slot-driven beacon chain core (state transition, block assembly, duties)."""

__version__ = "0.1.0"
