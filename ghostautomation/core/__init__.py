"""
Core module - Database, configuration, data models and the record store
"""

from .database import get_supabase_client
from .config import Config, KernelConfig, load_kernel_config

__all__ = ['get_supabase_client', 'Config', 'KernelConfig', 'load_kernel_config']
