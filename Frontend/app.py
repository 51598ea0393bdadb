import streamlit as st
import requests
import pandas as pd
import os
from dotenv import load_dotenv

load_dotenv()
API_URL = os.getenv("API_URL", "http://127.0.0.1:8000")

DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MAX_HABITS = 6

# -------------------------------
# API HELPERS
# -------------------------------
def safe_json(resp):
    try:
        return resp.json()
    except ValueError:
        return {}

def post_api(path, payload=None):
    try:
        resp = requests.post(f"{API_URL}{path}", json=payload or {}, timeout=5)
    except requests.RequestException:
        return {}
    return safe_json(resp)

def list_habits_api():
    data = post_api("/habit/list")
    return data.get("habits", []) if data.get("success") else []

def add_habit_api(name):
    return post_api("/habit/add", {"name": name})

def remove_habit_api(name):
    return post_api("/habit/remove", {"name": name})

def toggle_habit_api(name, day):
    return post_api("/habit/toggle", {"name": name, "day": day})

def weekly_summary_api():
    return post_api("/habit/weekly-summary")

# -------------------------------
# VIEW HELPERS
# -------------------------------
def display_stars(rating):
    """Star rating as a plain string, e.g. '⭐⭐⭐☆☆'."""
    return "⭐" * rating + "☆" * (5 - rating)

def completion_table(habits):
    """Habits as rows, days as columns, ✅ where done."""
    rows = {
        h["name"]: ["✅" if h.get("completed", {}).get(day) else "" for day in DAYS]
        for h in habits
    }
    return pd.DataFrame.from_dict(rows, orient="index", columns=DAYS)

# -------------------------------
# PAGES
# -------------------------------
def submit_new_habit():
    """Button callback: runs before the rerun, so the input can still be cleared."""
    result = add_habit_api(st.session_state.get("new_habit", ""))
    if result.get("success"):
        st.session_state["new_habit"] = ""
    else:
        st.session_state["add_error"] = result.get("error", "Could not reach the API.")

def add_habit_form(habits):
    error = st.session_state.pop("add_error", None)
    if error:
        st.warning(error)

    col1, col2 = st.columns([4, 1])
    with col1:
        st.text_input(
            "New habit",
            placeholder=f"Add a new habit (up to {MAX_HABITS})",
            label_visibility="collapsed",
            key="new_habit",
        )
    with col2:
        st.button("Add Habit", type="primary", use_container_width=True,
                  disabled=len(habits) >= MAX_HABITS, on_click=submit_new_habit)

def week_grid(habits):
    columns = st.columns(len(DAYS))
    for day, column in zip(DAYS, columns):
        with column:
            st.markdown(f"**{day}**")
            for habit in habits:
                done = habit.get("completed", {}).get(day, False)
                label = f"✅ {habit['name']}" if done else habit["name"]
                if st.button(label, key=f"toggle_{day}_{habit['name']}", use_container_width=True):
                    toggle_habit_api(habit["name"], day)
                    st.rerun()

def delete_buttons(habits):
    st.markdown("### Manage Habits")
    for habit in habits:
        col1, col2 = st.columns([4, 1])
        col1.write(habit["name"])
        if col2.button("Delete", key=f"delete_{habit['name']}", use_container_width=True):
            remove_habit_api(habit["name"])
            st.rerun()

def weekly_summary_section(habits):
    summary = weekly_summary_api()
    if not summary.get("success"):
        return
    st.markdown("### This Week")
    st.write(f"{display_stars(summary.get('stars', 0))}  "
             f"{summary.get('completion_pct', 0)}% of habit-days completed")
    st.dataframe(completion_table(habits), use_container_width=True)

def main():
    st.set_page_config(page_title="Habit Tracker", layout="wide", page_icon="🎯")
    st.markdown("<h1 style='text-align:center;'>Habit Tracker</h1>", unsafe_allow_html=True)

    habits = list_habits_api()
    add_habit_form(habits)

    if not habits:
        st.info("No habits yet. Add some habits to get started! 🌟")
        return

    week_grid(habits)
    delete_buttons(habits)
    weekly_summary_section(habits)

if __name__ == "__main__":
    main()
