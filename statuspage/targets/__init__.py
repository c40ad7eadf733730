from statuspage.targets.registry import Target, TargetRegistry

__all__ = [
    "Target",
    "TargetRegistry",
]
