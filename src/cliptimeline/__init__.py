"""cliptimeline — multi-track timeline engine for a browser-style video editor.

Holds clip placement state (with collision resolution, snapping and
undo/redo), resolves what a preview should be playing at any global time,
and compiles the timeline into ffmpeg operations that export one file.
Projects are declared in YAML manifests.
"""
