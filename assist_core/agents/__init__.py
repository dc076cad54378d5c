# Package initialization for agents module
from .tools import Capability, ToolContext, ToolRegistry, ToolDispatcher
from .builtin_tools import PriceLookupTool, ShippingLookupTool, KnowledgeSearchTool, builtin_tools
from .shipping import ShippingRateProvider, ShippingZoneRateProvider, HttpShippingRateProvider
from .tone import ToneAnalyzer, ToneAdapter, ToneAnalysis, ToneProfile

__all__ = [
    'Capability',
    'ToolContext',
    'ToolRegistry',
    'ToolDispatcher',
    'PriceLookupTool',
    'ShippingLookupTool',
    'KnowledgeSearchTool',
    'builtin_tools',
    'ShippingRateProvider',
    'ShippingZoneRateProvider',
    'HttpShippingRateProvider',
    'ToneAnalyzer',
    'ToneAdapter',
    'ToneAnalysis',
    'ToneProfile'
]
