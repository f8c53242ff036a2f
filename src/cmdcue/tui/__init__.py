from cmdcue.tui.app import CommandSelectionApp, SelectionOutcome, run_selection

__all__ = ["CommandSelectionApp", "SelectionOutcome", "run_selection"]
