"""svc-agent: install and start versioned services locally.

Core design goals:
- One start sequence: health check, resolve version, verify or install, launch
- Reuse a verified install; reinstall on service/version mismatch or --clean
- Offline mode runs whatever is already on disk
- Install and runtime records kept next to each install
- Centralized logging
"""

__all__ = []
