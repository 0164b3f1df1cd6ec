import os
import logging
import torch

# the engine computes every adjoint itself, torch is only used for the math
torch.autograd.set_grad_enabled(False)

dtype = torch.float64
device = torch.device("cpu")

LOG_LEVEL = os.environ.get("VECGRAD_LOG_LEVEL", "WARNING").upper()
LOG_FILE = os.environ.get("VECGRAD_LOG_FILE")
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

logger = logging.getLogger("vecgrad")
logger.setLevel(LOG_LEVEL)
if LOG_FILE:
    _handler = logging.FileHandler(LOG_FILE)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(_handler)
else:
    logger.addHandler(logging.NullHandler())

logger.info(f"Running on: CPU ({dtype})")
