import streamlit as st
import pandas as pd
from typing import List, Dict, Any

from .api import ApiError
from .mapping import ColumnMapperState, FIELD_LABELS
from .review import RowReviewGrid, STATUS_FILTERS
from .row_edit import RowEditForm, PartSearch
from .upload_store import STEPS
from .utils import validate_file, format_bytes


def render_steps(current: int):
    cols = st.columns(len(STEPS))
    for i, (col, name) in enumerate(zip(cols, STEPS)):
        marker = "✅" if i < current else ("🔵" if i == current else "⚪")
        col.markdown(f"{marker} **{i + 1}. {name}**" if i == current else f"{marker} {i + 1}. {name}")


def render_upload(store):
    st.subheader("Upload inventory file")
    file = st.file_uploader(
        "CSV, Excel, PDF, Pages or a photo of a parts list",
        type=["csv", "xlsx", "xls", "pdf", "pages", "jpg", "jpeg", "png", "webp"],
    )
    camera = st.camera_input("Or take a photo", label_visibility="collapsed") if st.toggle("Use camera") else None
    picked = file or camera
    st.text_input("Sheet name (optional, Excel only)", key="sheet_name")

    if picked is not None:
        name = getattr(picked, "name", None) or "camera.jpg"
        data = picked.getvalue()
        st.caption(f"{name} · {format_bytes(len(data))}")
        problem = validate_file(name, len(data))
        if problem:
            st.error(problem)
            return
        if st.button("Upload & parse", type="primary", disabled=store.is_loading):
            with st.spinner("Uploading and reading the file..."):
                ok = store.upload_and_parse(name, data, getattr(picked, "type", None),
                                            st.session_state.sheet_name or None)
            if ok:
                st.session_state.mapper = None
                st.rerun()
    if store.error:
        st.error(store.error)

    _render_recent_sessions(store)


def _render_recent_sessions(store):
    with st.expander("Recent uploads"):
        if st.button("Refresh list"):
            store.fetch_sessions()
        if store.sessions:
            st.dataframe(pd.DataFrame([{
                "File": s.get("originalName"),
                "Status": s.get("status"),
                "Rows": s.get("totalRows"),
                "Processed": s.get("processedRows"),
                "Errors": s.get("errorRows"),
                "Created": s.get("createdAt"),
            } for s in store.sessions]), use_container_width=True, hide_index=True)


def render_mapping(store):
    st.subheader("Map your columns")
    session = store.session or {}
    for w in session.get("parseWarnings") or []:
        st.warning(w)
    st.caption(f"{session.get('totalRows', 0)} rows found · AI suggestions {'on' if store.ai_used else 'off'}")

    if st.session_state.mapper is None:
        st.session_state.mapper = ColumnMapperState(store.headers, store.mappings, store.sample_rows)
    mapper: ColumnMapperState = st.session_state.mapper

    if st.button("Re-run auto mapping", disabled=store.is_loading):
        if store.get_ai_mappings():
            st.session_state.mapper = ColumnMapperState(store.headers, store.mappings, store.sample_rows)
            st.rerun()

    for entry in mapper.mapped():
        _mapping_row(mapper, entry["sourceColumn"])

    unmapped = mapper.unmapped()
    if unmapped:
        st.markdown("**Unmapped Columns**")
        for source in unmapped:
            _mapping_row(mapper, source)

    if not mapper.can_confirm():
        st.info("Map a column to Part Number to continue.")

    b1, b2 = st.columns([1, 1])
    with b1:
        if st.button("Back", disabled=store.is_loading):
            store.back()
            st.rerun()
    with b2:
        if st.button("Confirm Mapping", type="primary", disabled=store.is_loading or not mapper.can_confirm()):
            with st.spinner("Matching rows against the parts catalog..."):
                ok = store.confirm_mapping(mapper.to_mappings())
            if ok:
                st.rerun()
    if store.error:
        st.error(store.error)


def _mapping_row(mapper: ColumnMapperState, source: str):
    c1, c2, c3, c4 = st.columns([2, 2, 1, 1])
    entry = next(e for e in mapper.entries if e["sourceColumn"] == source)
    with c1:
        st.markdown(f"**{source}**")
        samples = mapper.sample_values(source)
        if samples:
            st.caption(", ".join(samples))
    with c2:
        options = [""] + mapper.options_for(source)
        current = entry["targetField"]
        choice = st.selectbox(
            f"Target for {source}", options,
            index=options.index(current) if current in options else 0,
            format_func=lambda v: FIELD_LABELS.get(v, "(not mapped)") if v else "(not mapped)",
            key=f"map_{source}", label_visibility="collapsed",
        )
        if choice != current:
            mapper.select(source, choice)
            st.rerun()
    with c3:
        badge = mapper.badge(source)
        if badge:
            st.markdown(f"`{badge}`")
    with c4:
        if current and st.button("Remove", key=f"rm_{source}"):
            mapper.remove(source)
            st.rerun()


def render_review(store, grid: RowReviewGrid):
    st.subheader("Review matched rows")
    summary = RowReviewGrid.summary(store.session)
    m1, m2, m3 = st.columns(3)
    m1.metric("Total rows", summary["total"])
    m2.metric("Ready", summary["processed"])
    m3.metric("Errors", summary["errors"])

    status = st.radio("Show", STATUS_FILTERS, horizontal=True, index=STATUS_FILTERS.index(grid.status_filter))
    if status != grid.status_filter:
        grid.set_filter(status)
        store.fetch_rows(page=1, limit=grid.limit, status=grid.status_param)
        st.rerun()

    rows = store.rows
    if not rows:
        st.info("No rows for this filter.")
    else:
        if st.checkbox("Select all on this page", value=grid.all_selected(rows), key=f"all_{grid.page}_{status}"):
            if not grid.all_selected(rows):
                grid.toggle_all(rows)
        elif grid.all_selected(rows):
            grid.toggle_all(rows)

        for row in rows:
            rec = RowReviewGrid.display_record(row)
            c0, c1, c2 = st.columns([0.5, 6, 1])
            with c0:
                checked = st.checkbox("sel", value=row["id"] in grid.selected, key=f"sel_{row['id']}",
                                      label_visibility="collapsed")
                if checked != (row["id"] in grid.selected):
                    grid.toggle(row["id"])
            with c1:
                color = grid.color_for(row.get("status", "error"))
                st.markdown(
                    f"<span style='color:{color};font-weight:600'>{rec['Status']}</span> · "
                    f"#{rec['Row']} · {rec['Part Number'] or '-'} · {rec['Title']} · "
                    f"{rec['Price']} · qty {rec['Qty']} · {rec['Confidence']}",
                    unsafe_allow_html=True,
                )
                if rec["Issues"]:
                    st.caption(f":red[{rec['Issues']}]")
            with c2:
                if st.button("Edit", key=f"edit_{row['id']}"):
                    st.session_state.editing_row_id = row["id"]
                    st.session_state.part_search = None

    p1, p2, p3 = st.columns([1, 2, 1])
    pages = grid.total_pages(store.pagination)
    with p1:
        if st.button("Prev", disabled=grid.page <= 1):
            store.fetch_rows(page=grid.prev_page(), limit=grid.limit, status=grid.status_param)
            st.rerun()
    with p2:
        st.caption(f"Page {grid.page} of {pages} · {store.pagination.get('total', 0)} rows")
    with p3:
        if st.button("Next", disabled=grid.page >= pages):
            store.fetch_rows(page=grid.next_page(store.pagination), limit=grid.limit, status=grid.status_param)
            st.rerun()

    if st.session_state.editing_row_id:
        render_row_edit(store, grid)

    a1, a2, a3 = st.columns([1, 1, 1])
    with a1:
        if st.button("Back", disabled=store.is_loading):
            store.back()
            st.rerun()
    with a2:
        if st.button("Import All Matched", type="primary", disabled=store.is_loading):
            if store.import_and_finish():
                st.rerun()
    with a3:
        if grid.show_import_selected():
            if st.button(f"Import Selected ({len(grid.selected)})", disabled=store.is_loading):
                if store.import_and_finish(row_ids=grid.selected_ids()):
                    st.rerun()
    if store.error:
        st.error(store.error)


def render_row_edit(store, grid: RowReviewGrid):
    row = next((r for r in store.rows if r["id"] == st.session_state.editing_row_id), None)
    if row is None:
        st.session_state.editing_row_id = None
        return
    form_key = f"form_{row['id']}"
    if form_key not in st.session_state:
        st.session_state[form_key] = RowEditForm(row)
    form: RowEditForm = st.session_state[form_key]

    with st.container(border=True):
        st.markdown(f"**Edit row {row.get('rowNumber')}**")
        for f in form.missing_fields():
            st.warning(f"Required field missing: {FIELD_LABELS.get(f, f)}")
        for field, value in list(form.values.items()):
            if field == "matchedPartId":
                continue
            label = FIELD_LABELS.get(field, field)
            form.set_value(field, st.text_input(label, value=value, key=f"{form_key}_{field}"))

        if form.needs_more_info():
            st.info("This row needs more information. Search for the correct part:")
            if st.session_state.part_search is None:
                st.session_state.part_search = PartSearch(store.api)
            search: PartSearch = st.session_state.part_search
            q = st.text_input("Search part number", key=f"{form_key}_q")
            if q != search.query:
                search.submit(q)
            for part in search.results:
                label = f"{part.get('partNumber')} · {part.get('title') or part.get('description') or ''}"
                if st.button(label, key=f"{form_key}_pick_{part['id']}"):
                    form.select_part(part)
            if search.error:
                st.error(search.error)
            if form.matched_part_id:
                st.success(f"Selected part {form.matched_part_id}. Save to apply.")

        s1, s2 = st.columns(2)
        with s1:
            if st.button("Save", type="primary", key=f"{form_key}_save", disabled=store.is_loading):
                if form.save(store):
                    del st.session_state[form_key]
                    st.session_state.editing_row_id = None
                    st.rerun()
        with s2:
            if st.button("Cancel", key=f"{form_key}_cancel"):
                del st.session_state[form_key]
                st.session_state.editing_row_id = None
                st.rerun()


def render_results(store, base_url: str):
    st.subheader("Import complete")
    result = store.import_result or {}
    session = store.session or {}
    r1, r2, r3 = st.columns(3)
    r1.metric("Listings created", result.get("imported", 0))
    r2.metric("Already imported", result.get("skipped", 0))
    r3.metric("Rows with errors", session.get("errorRows", 0))

    errors: List[Dict[str, Any]] = result.get("errors") or []
    if errors:
        with st.expander(f"{len(errors)} rows failed to import"):
            st.dataframe(pd.DataFrame(errors), use_container_width=True, hide_index=True)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Export review to Excel"):
            try:
                st.session_state.export = store.api.export(store.session_id)
            except ApiError as e:
                st.error(e.message)
        export = st.session_state.export
        if export:
            st.markdown(f"[Download {export['filename']}]({base_url}{export['url']})")
    with c2:
        if st.button("Publish to Flying411", disabled=store.is_loading):
            with st.spinner("Publishing listings..."):
                store.publish_listings()
        pub = store.publish_result
        if pub:
            s = pub.get("summary", {})
            st.write(f"Published {s.get('succeeded', 0)} of {s.get('total', 0)} listings")

    if st.button("Start a new upload", type="primary"):
        return True
    return False

