from .model import BankModel, BankScenario, customer, customer_source

__all__ = ["BankModel", "BankScenario", "customer", "customer_source"]
