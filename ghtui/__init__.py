"""
ghtui - Terminal User Interface for GitHub pull requests and Actions.

Architecture:
- state.py / input.py: pure navigation state machine and input buffering
- controller.py: single owner of UI state; carries out intents
- dispatch.py: async task per request, generation-based staleness checks
- providers.py: entity snapshots + DataProvider protocol
- github_client.py: httpx implementation of DataProvider
- views/: Textual screen and pure renderers
- app.py: Textual application wiring the loop together

Extensibility points:
1. New data sources: implement the DataProvider protocol
2. New keys: add a transition in state.py and an _on_<action> handler
3. New panels: add a render_* function and place it in DashboardScreen
"""
