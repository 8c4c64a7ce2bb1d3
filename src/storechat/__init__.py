"""storechat - conversational analytics agent for WooCommerce stores.

storechat runs a durable, resumable LLM agent that answers questions about
a store by calling store-data tools, a sandboxed code interpreter, and two
presentation tools that hand validated chart/table/card envelopes to the UI.

Key modules:

- :mod:`storechat.agent` - Turn orchestrator, system prompt, token usage
- :mod:`storechat.memory` - Checkpoint store with per-message annotation overlay
- :mod:`storechat.tools` - Tool schema, registry and per-request tool assembly
- :mod:`storechat.woocommerce` - Async WooCommerce REST client and analytics
- :mod:`storechat.sandbox` - Restricted interpreter for model-authored code
- :mod:`storechat.llm` - Chat model clients for the supported providers
- :mod:`storechat.server` - FastAPI app with SSE streaming
"""

__version__ = "0.1.0"
