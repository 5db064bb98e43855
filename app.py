import streamlit as st

from gradecalc.analytics import gwa_summary, history_frame, history_stats, remark_distribution, subjects_frame
from gradecalc.app_logger import setup_logging
from gradecalc.backend_logic import (
    GRADE_RANGES,
    GWA_SCALE,
    celebration_transition,
    compute_final_grade,
    get_gwa_remark,
    goal_progress,
    grade_result_payload,
    percentage_to_gwa,
    status_to_color_class,
    validate_period_grades,
)
from gradecalc.config import load_settings
from gradecalc.errors import GradeCalcError
from gradecalc.io_csv import history_to_csv, parse_subjects, read_csv_upload, subjects_to_csv, validate_subjects_csv
from gradecalc.models import PERIOD_FIELDS
from gradecalc.repositories import GoalRepository, HistoryRepository, Preferences, SubjectRepository, reload_on_change
from gradecalc.storage import HISTORY_LAYOUT_KEY, THEME_KEY, JsonStore

# ------------------------
# Streamlit UI
# ------------------------

logger = setup_logging()

st.set_page_config(
    page_title="Grade Calculator | Final Grade, GWA & Honors",
    page_icon="🎓",
    layout="wide",
)

PAGES = ["Calculator", "History", "GWA Calculator", "Analytics"]
PERIOD_LABELS = {
    "prelims": "Prelims",
    "midterm": "Midterm",
    "prefinals": "Pre-Finals",
    "finals": "Finals",
}
TAG_RENDER = {"success": st.success, "warning": st.warning, "info": st.info, "error": st.error}


# Repositories live for the whole browser session. Writes through this
# session's store reload every repository on the same key; the reload on
# each rerun picks up edits made in another tab.
if "store" not in st.session_state:
    store = JsonStore(load_settings().data_dir)
    st.session_state["store"] = store
    st.session_state["history_repo"] = HistoryRepository(store)
    st.session_state["subject_repo"] = SubjectRepository(store)
    st.session_state["goal_repo"] = GoalRepository(store)
    st.session_state["prefs"] = Preferences(store)
    reload_on_change(
        store,
        [st.session_state[k] for k in ("history_repo", "subject_repo", "goal_repo")],
    )
    st.session_state["goal_achieved"] = False
    logger.info("opened store at %s", store.data_dir)
else:
    for repo_key in ("history_repo", "subject_repo", "goal_repo"):
        st.session_state[repo_key].reload()

history_repo: HistoryRepository = st.session_state["history_repo"]
subject_repo: SubjectRepository = st.session_state["subject_repo"]
goal_repo: GoalRepository = st.session_state["goal_repo"]
prefs: Preferences = st.session_state["prefs"]

st.sidebar.title("🎓 Grade Calculator")
page = st.sidebar.radio("Navigate", PAGES, label_visibility="collapsed")

dark = st.sidebar.toggle("Dark theme", value=prefs.get(THEME_KEY) == "dark")
theme = "dark" if dark else "light"
if theme != prefs.get(THEME_KEY):
    prefs.set(THEME_KEY, theme)
if dark:
    st.markdown(
        """
        <style>
        .stApp { background-color: #1d232a; color: #a6adbb; }
        </style>
        """,
        unsafe_allow_html=True,
    )


# ------------------------
# Calculator
# ------------------------
def render_calculator():
    st.title("Final Grade Calculator")
    st.write(
        "Prelims, Midterm and Pre-Finals count for **20%** each, Finals for **40%**."
    )

    editing = st.session_state.get("editing_record")
    if editing is not None:
        st.info(f"Editing **{editing.title}**. Saving will update this record.")

    with st.form("period_grades_form"):
        cols = st.columns(4)
        periods = {}
        for col, field in zip(cols, PERIOD_FIELDS):
            with col:
                periods[field] = st.text_input(
                    PERIOD_LABELS[field],
                    placeholder="eg: 75",
                    key=f"period_{field}",
                )
        title = st.text_input(
            "Title (optional)",
            placeholder="e.g. Computer Programming 1",
            key="history_title",
        )
        c1, c2 = st.columns(2)
        with c1:
            calculate = st.form_submit_button("Calculate", type="primary")
        with c2:
            save = st.form_submit_button("Calculate & save to history")

    if calculate or save:
        errors = validate_period_grades(periods)
        for field, message in errors.items():
            st.error(f"{PERIOD_LABELS[field]}: {message}")
        if not errors:
            try:
                final_grade = compute_final_grade(periods)
            except GradeCalcError as e:
                st.error(str(e))
            else:
                payload = grade_result_payload(final_grade)
                m1, m2, m3 = st.columns(3)
                with m1:
                    st.metric("Final grade", payload["finalGrade"])
                with m2:
                    st.metric("Remark", payload["remark"])
                with m3:
                    st.metric("GWA equivalent", f"{percentage_to_gwa(final_grade):.2f}")
                TAG_RENDER[payload["colorTag"]](payload["remark"])

                if save:
                    record_id = editing.id if editing is not None else None
                    record = history_repo.save(periods, final_grade, title, record_id)
                    st.session_state.pop("editing_record", None)
                    st.success(f"Saved **{record.title}** to history.")

    st.subheader("Grading scale")
    st.dataframe(
        [{"Range": band.label, "GWA": band.gwa, "Remark": band.remark} for band in GRADE_RANGES],
        hide_index=True,
        use_container_width=True,
    )


# ------------------------
# History
# ------------------------
def render_history():
    st.title("History")
    records = history_repo.list()
    if not records:
        st.info("No saved calculations yet. Use the **Calculator** to add one.")
        return

    layout = st.radio(
        "Layout",
        ["table", "cards"],
        index=0 if prefs.get(HISTORY_LAYOUT_KEY) == "table" else 1,
        horizontal=True,
    )
    if layout != prefs.get(HISTORY_LAYOUT_KEY):
        prefs.set(HISTORY_LAYOUT_KEY, layout)

    if layout == "table":
        st.dataframe(
            history_frame(records).drop(columns=["id", "grade"]),
            hide_index=True,
            use_container_width=True,
        )

    for record in records:
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([4, 2, 1, 1])
            with c1:
                st.markdown(f"**{record.title}**  \n{record.timestamp}")
                if layout == "cards":
                    st.caption(
                        " · ".join(f"{PERIOD_LABELS[f]} {getattr(record, f)}" for f in PERIOD_FIELDS)
                    )
            with c2:
                payload = grade_result_payload(record.final_grade)
                st.markdown(f"{payload['finalGrade']} · {payload['remark']}")
            with c3:
                if st.button("Edit", key=f"edit_{record.id}"):
                    st.session_state["editing_record"] = record
                    for field in PERIOD_FIELDS:
                        st.session_state[f"period_{field}"] = getattr(record, field)
                    st.session_state["history_title"] = record.title
                    st.info("Open the **Calculator** page to edit this record.")
            with c4:
                if st.button("Delete", key=f"delete_{record.id}"):
                    history_repo.delete(record.id)
                    st.rerun()

    st.download_button(
        "Export history as CSV",
        history_to_csv(records),
        file_name="grade_history.csv",
        mime="text/csv",
    )
    if st.button("Clear all history", type="secondary"):
        history_repo.clear()
        st.rerun()


# ------------------------
# GWA calculator
# ------------------------
def render_gwa_calculator():
    st.title("GWA Calculator")

    subjects = subject_repo.list()
    summary = gwa_summary(subjects)

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("GWA", f"{summary['gwa']:.2f}" if summary["gwa"] is not None else "—")
    with c2:
        st.metric("Total units", summary["total_units"])
    with c3:
        st.metric("Dean's Lister", "Eligible" if summary["deans_list_eligible"] else "Not eligible")
    with c4:
        st.metric("President's Lister", "Eligible" if summary["presidents_list_eligible"] else "Not eligible")
    if summary["status"] is not None:
        TAG_RENDER[status_to_color_class(summary["status"])](f"Academic status: **{summary['status']}**")

    with st.form("subject_form", clear_on_submit=True):
        st.subheader("Add subject")
        f1, f2, f3 = st.columns([3, 1, 1])
        with f1:
            name = st.text_input("Subject name", placeholder="e.g. Computer Programming 1")
        with f2:
            units = st.number_input("Units", min_value=1, max_value=6, value=3, step=1)
        with f3:
            grade = st.selectbox("Grade", GWA_SCALE, format_func=lambda g: f"{g:.2f} ({get_gwa_remark(g)})")
        if st.form_submit_button("Add subject", type="primary"):
            try:
                subject_repo.create(name, units, grade)
            except GradeCalcError as e:
                st.error(str(e))
            else:
                st.rerun()

    if subjects:
        st.subheader("Subjects")
        for subject in subjects:
            with st.expander(f"{subject.name} · {subject.units} units · {subject.grade:.2f}"):
                e1, e2, e3 = st.columns([3, 1, 1])
                with e1:
                    new_name = st.text_input("Name", value=subject.name, key=f"name_{subject.id}")
                with e2:
                    new_units = st.number_input(
                        "Units", min_value=1, max_value=6, value=subject.units, key=f"units_{subject.id}"
                    )
                with e3:
                    new_grade = st.selectbox(
                        "Grade",
                        GWA_SCALE,
                        index=GWA_SCALE.index(subject.grade) if subject.grade in GWA_SCALE else 0,
                        format_func=lambda g: f"{g:.2f}",
                        key=f"grade_{subject.id}",
                    )
                b1, b2 = st.columns(2)
                with b1:
                    if st.button("Update", key=f"update_{subject.id}"):
                        try:
                            subject_repo.update(subject.id, name=new_name, units=new_units, grade=new_grade)
                        except GradeCalcError as e:
                            st.error(str(e))
                        else:
                            st.rerun()
                with b2:
                    if st.button("Delete", key=f"delete_subject_{subject.id}"):
                        subject_repo.delete(subject.id)
                        st.rerun()

        st.dataframe(subjects_frame(subjects).drop(columns=["id"]), hide_index=True, use_container_width=True)
        st.download_button("Export subjects as CSV", subjects_to_csv(subjects), file_name="gwa_subjects.csv", mime="text/csv")
        if st.button("Clear all subjects"):
            subject_repo.clear()
            st.rerun()

    st.subheader("Import")
    records = history_repo.list()
    if records:
        options = {f"{r.title} ({r.final_grade} → {percentage_to_gwa(r.final_grade):.2f})": r for r in records}
        choice = st.selectbox("From history", list(options.keys()))
        if st.button("Import as subject (3 units)"):
            imported = subject_repo.import_from_history(options[choice])
            st.success(f"Imported **{imported.name}**.")
            st.rerun()

    uploaded = st.file_uploader("Or upload a subjects CSV (Name, Units, Grade)", type=["csv"])
    if uploaded is not None and st.button("Add subjects from CSV"):
        try:
            rows = parse_subjects(validate_subjects_csv(read_csv_upload(uploaded)))
        except Exception as e:
            st.error(f"Subjects CSV error: {e}")
        else:
            for row in rows:
                subject_repo.create(**row)
            st.success(f"Added {len(rows)} subject(s).")
            st.rerun()


# ------------------------
# Analytics
# ------------------------
def render_analytics():
    st.title("Performance Analytics")
    records = history_repo.list()
    stats = history_stats(records)

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Highest", stats["highest"])
    with c2:
        st.metric("Lowest", stats["lowest"])
    with c3:
        st.metric("Average", stats["average"])
    with c4:
        st.metric("Pass : Fail", stats["pass_fail_ratio"])

    if records:
        st.bar_chart(remark_distribution(records))

    st.markdown("---")
    st.subheader("GWA goal")
    subjects = subject_repo.list()
    summary = gwa_summary(subjects)
    goal = goal_repo.get()

    with st.form("goal_form"):
        target = st.number_input(
            "Target GWA",
            min_value=1.00,
            max_value=5.00,
            value=goal.target_gwa if goal is not None else 1.75,
            step=0.25,
            format="%.2f",
        )
        g1, g2 = st.columns(2)
        with g1:
            set_goal = st.form_submit_button("Set goal", type="primary")
        with g2:
            clear_goal = st.form_submit_button("Clear goal")
    if set_goal:
        try:
            goal = goal_repo.set(target)
        except GradeCalcError as e:
            st.error(str(e))
    if clear_goal:
        goal_repo.clear()
        goal = None

    progress = goal_progress(goal, summary["gwa"], subjects)
    state = celebration_transition(st.session_state["goal_achieved"], progress)
    st.session_state["goal_achieved"] = state.achieved

    if goal is None:
        st.info("No goal set.")
    elif progress is None:
        st.info("Add subjects on the **GWA Calculator** page to track this goal.")
    else:
        st.progress(progress.percentage / 100, text=f"{progress.percentage:.1f}% toward {progress.target_gwa:.2f}")
        if progress.achieved:
            st.success(f"Goal reached: your GWA of {progress.current_gwa:.2f} meets the {progress.target_gwa:.2f} target.")
        else:
            st.write(
                f"You are **{progress.remaining:.2f}** away from your target. "
                f"Over your next 15 units you need an average of about **{progress.required_average:.2f}**."
            )
    if state.newly_achieved:
        st.balloons()


if page == "Calculator":
    render_calculator()
elif page == "History":
    render_history()
elif page == "GWA Calculator":
    render_gwa_calculator()
else:
    render_analytics()
