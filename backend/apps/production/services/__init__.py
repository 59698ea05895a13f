from .bom import BomService, ComponentRequirement, active_bom_for

__all__ = ["BomService", "ComponentRequirement", "active_bom_for"]
