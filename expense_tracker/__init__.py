"""Personal expense tracker on Streamlit + Firebase."""

__version__ = "1.0.0"
