from .contracts import ContractService, shift_months

__all__ = ["ContractService", "shift_months"]
