"""ravenmind - conversational agent runtime for a Discord bot.

A single local GPU is shared by an Ollama text model and a ComfyUI image
pipeline; the agent calls tools through plain-text JSON blocks and remembers
users across sessions.

Key modules:

- :mod:`ravenmind.agent` - Tool-calling orchestration loop
- :mod:`ravenmind.memory` - Conversation store, long-term memory, context assembly
- :mod:`ravenmind.resources` - GPU memory coordination between backends
- :mod:`ravenmind.llm` - Ollama client, retry policy, model sleep/wake gate
- :mod:`ravenmind.security` - Tool permissions and impersonation detection
- :mod:`ravenmind.tools` - Built-in tools and the dispatcher
- :mod:`ravenmind.mcp` - External MCP tool servers
- :mod:`ravenmind.channels` - Discord transport
"""

__version__ = "0.1.0"
