"""azrestore - Azure VM restore point automation

Philosophy:
- Ruthless simplicity
- Explicit session, no ambient Azure context
- Fail fast with helpful guidance

azrestore toggles the periodic restore points feature on Azure VMs and
restores a VM's disks from a previously captured restore point.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
