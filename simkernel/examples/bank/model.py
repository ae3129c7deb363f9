"""
Bank Renege Model
=================

Customers arrive at a bank at exponentially distributed intervals and queue for a
counter. A customer who is not served within the maximum wait time leaves unhappy;
the others are served for an exponentially distributed service time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import pandas as pd

from simkernel import Resource, Simulation

logger = logging.getLogger(__name__)

OUTCOME_COLUMNS = ["customer", "arrival", "outcome", "wait", "departure"]


@dataclass(frozen=True, slots=True)
class BankScenario:
    """Scenario parameters for the bank model.

    Attributes:
        n_customers: Number of customers generated
        mean_arrival_interval: Mean time between two arrivals
        max_wait_time: Time a customer waits for a counter before leaving
        mean_service_time: Mean time a customer spends at the counter
        counters: Number of counters
        seed: Seed for the random number generators (None = fresh entropy)
    """

    n_customers: int = 10
    mean_arrival_interval: float = 10.0
    max_wait_time: float = 16.0
    mean_service_time: float = 12.0
    counters: int = 1
    seed: int | None = None

    def __post_init__(self):
        """Validate scenario parameters."""
        if self.n_customers < 0:
            raise ValueError(f"n_customers must be >= 0, got {self.n_customers}")
        for name in ("mean_arrival_interval", "mean_service_time"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")
        if self.max_wait_time < 0:
            raise ValueError(f"max_wait_time must be >= 0, got {self.max_wait_time}")
        if self.counters < 1:
            raise ValueError(f"counters must be >= 1, got {self.counters}")


async def customer(model: BankModel, customer_id: int) -> str:
    """A customer waiting for a counter, served or reneging."""
    simulation = model.simulation
    arrival = simulation.now
    logger.info("[%5.1f] Customer %d arrives", arrival, customer_id)

    with model.counters.request() as request:
        await (request | simulation.timeout(model.scenario.max_wait_time))

        if not request.triggered:
            logger.info("[%5.1f] Customer %d leaves unhappy", simulation.now, customer_id)
            model.record(customer_id, arrival, "reneged", simulation.now - arrival)
            return "reneged"

        wait = simulation.now - arrival
        logger.info("[%5.1f] Customer %d gets to the counter", simulation.now, customer_id)
        service_time = model.rng.exponential(model.scenario.mean_service_time)
        await simulation.timeout(service_time)

        logger.info("[%5.1f] Customer %d leaves", simulation.now, customer_id)
        model.record(customer_id, arrival, "served", wait)
        return "served"


def customer_source(model: BankModel):
    """Generate customers at exponentially distributed intervals."""
    for customer_id in range(1, model.scenario.n_customers + 1):
        model.simulation.process(
            customer(model, customer_id), name=f"customer-{customer_id}"
        )
        yield model.simulation.timeout(
            model.rng.exponential(model.scenario.mean_arrival_interval)
        )


class BankModel:
    """A bank with a limited number of counters and impatient customers.

    Attributes:
        scenario (BankScenario): The scenario parameters
        simulation (Simulation): The simulation running the model
        counters (Resource): The bank counters
    """

    def __init__(self, scenario: BankScenario | None = None):
        """Initialize the model.

        Args:
            scenario: BankScenario object containing model parameters.
        """
        if scenario is None:
            scenario = BankScenario()

        self.scenario = scenario
        self.simulation = Simulation(rng=scenario.seed)
        self.counters = Resource(self.simulation, scenario.counters)
        self._records: list[tuple] = []

        self.simulation.process(customer_source(self), name="customer_source")

    @property
    def rng(self):
        """Return the seeded numpy rng of the simulation."""
        return self.simulation.rng

    def record(self, customer_id: int, arrival: float, outcome: str, wait: float):
        """Record the outcome of a customer leaving the bank now."""
        self._records.append(
            (customer_id, arrival, outcome, wait, self.simulation.now)
        )

    def run(self) -> pd.DataFrame:
        """Run the model until every customer has left and return the outcomes."""
        self.simulation.run()
        return self.outcomes

    @property
    def outcomes(self) -> pd.DataFrame:
        """Return one row per customer that has left, ordered by customer."""
        df = pd.DataFrame.from_records(self._records, columns=OUTCOME_COLUMNS)
        return df.sort_values("customer", ignore_index=True)
