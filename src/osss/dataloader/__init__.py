from osss.dataloader.config_loader import ConfigLoader
from osss.dataloader.documents import DocumentLoader

__all__ = ["ConfigLoader", "DocumentLoader"]
