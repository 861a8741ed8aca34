from .config import ImporterConfig
from .config_store import ImportConfigStore
from .import_analyzer import ImportAnalyzer
from .models.import_analysis import ImportAnalysis
from .models.import_config import ImportConfig

__version__ = "0.1.0"

__all__ = ['ImporterConfig', 'ImportConfigStore', 'ImportAnalyzer', 'ImportAnalysis', 'ImportConfig']
