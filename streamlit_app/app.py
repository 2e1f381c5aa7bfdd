# streamlit_app/app.py
import streamlit as st
from src.state import init_state, start_over
from src import api
from src.upload_store import STEP_UPLOAD, STEP_MAPPING, STEP_REVIEW, STEP_RESULTS
from src.ui import render_steps, render_upload, render_mapping, render_review, render_results

st.set_page_config(page_title="Flying411 Bulk Upload", layout="wide")
init_state()

store = st.session_state.store
grid = st.session_state.grid

st.title("Flying411 Bulk Upload")
st.caption("Upload → Map Columns → Review → Import")

with st.sidebar:
    st.text_input("User ID", key="user_id", disabled=True)
    st.caption(f"API: {store.api.base_url}")
    if st.button("Start over"):
        start_over()
        st.rerun()

render_steps(store.step)
st.markdown("---")

if store.step == STEP_UPLOAD:
    render_upload(store)
elif store.step == STEP_MAPPING:
    render_mapping(store)
elif store.step == STEP_REVIEW:
    render_review(store, grid)
elif store.step == STEP_RESULTS:
    if render_results(store, api.BASE):
        start_over()
        st.rerun()
