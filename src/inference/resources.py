"""
On-demand sampling of host CPU, memory and accelerator utilization.
"""

from collections.abc import Callable
from typing import Optional

import psutil
import structlog

from .models import ResourceSnapshot

logger = structlog.get_logger(__name__)

# (utilization %, memory %) or None when no accelerator is visible
AcceleratorProbe = Callable[[], Optional[tuple[Optional[float], Optional[float]]]]


def torch_cuda_probe() -> Optional[tuple[Optional[float], Optional[float]]]:
    """Report utilization of the first CUDA device through torch, if present"""
    try:
        import torch
    except ImportError:
        return None

    if not torch.cuda.is_available():
        return None

    utilization = None
    try:
        utilization = float(torch.cuda.utilization(0))
    except Exception as e:
        # Needs pynvml; memory is still reportable without it
        logger.debug("Accelerator utilization unavailable", error=str(e))

    free, total = torch.cuda.mem_get_info(0)
    mem_pct = round((total - free) / total * 100, 2) if total else None
    return utilization, mem_pct


class ResourceMonitor:
    """Samples resource utilization for inference log records"""

    def __init__(self, accelerator_probe: AcceleratorProbe = torch_cuda_probe):
        self._accelerator_probe = accelerator_probe
        # Prime psutil so the first non-blocking cpu_percent() is meaningful
        psutil.cpu_percent(interval=None)

    def accelerator_available(self) -> bool:
        """Whether a preferred accelerator is visible to this process"""
        try:
            return self._accelerator_probe() is not None
        except Exception as e:
            logger.warning("Accelerator probe failed", error=str(e))
            return False

    def sample(self) -> ResourceSnapshot:
        """Take a snapshot; fields that cannot be read are None"""
        cpu_pct = None
        mem_pct = None
        accelerator_pct = None
        accelerator_mem_pct = None

        try:
            cpu_pct = psutil.cpu_percent(interval=None)
            mem_pct = psutil.virtual_memory().percent
        except Exception as e:
            logger.debug("Host resource sampling failed", error=str(e))

        try:
            accelerator = self._accelerator_probe()
            if accelerator is not None:
                accelerator_pct, accelerator_mem_pct = accelerator
        except Exception as e:
            logger.debug("Accelerator sampling failed", error=str(e))

        return ResourceSnapshot(
            cpu_pct=cpu_pct,
            mem_pct=mem_pct,
            accelerator_pct=accelerator_pct,
            accelerator_mem_pct=accelerator_mem_pct,
        )
