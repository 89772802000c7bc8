"""Qt bindings for the medication engine.

`QtDelivery` and `QtDirectoryWatcher` plug Qt's event loop and file watching
into `MedicationsController`; `MedicationsAdapter` exposes the controller to
widgets as signals and slots.
"""
