# streamlit_app/src/state.py
import streamlit as st

from .api import ApiClient, USER_ID
from .review import RowReviewGrid
from .upload_store import UploadStore


def _toast(kind: str, message: str) -> None:
    st.toast(message, icon="⚠️" if kind == "error" else "✅")


def init_state():
    for k, v in {
        "user_id": USER_ID,
        "sheet_name": "",
        "mapper": None,
        "editing_row_id": None,
        "part_search": None,
        "export": None,
    }.items():
        if k not in st.session_state:
            st.session_state[k] = v
    if "store" not in st.session_state:
        st.session_state.store = UploadStore(ApiClient(user_id=st.session_state.user_id), notify=_toast)
    if "grid" not in st.session_state:
        st.session_state.grid = RowReviewGrid()


def start_over():
    st.session_state.store.reset()
    st.session_state.grid = RowReviewGrid()
    for k in ("mapper", "editing_row_id", "part_search", "export"):
        st.session_state[k] = None
