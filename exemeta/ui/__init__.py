from exemeta.ui.app import MainWindow

__all__ = ["MainWindow"]
