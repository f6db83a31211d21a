"""AI provider adapters.

Import adapters from their modules (``providers.openai_provider`` etc.);
this package module stays import-free so ``providers.errors`` can be used
by the retry handler without loading every SDK.
"""
