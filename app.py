import os
import requests
import streamlit as st
from datetime import datetime
from typing import Literal, Optional


# ------------------------------------------------------------------------------
# Page Config:
# ------------------------------------------------------------------------------

st.set_page_config(
    page_title="RAG Chatbot",
    page_icon="✨",
    layout='wide',
    initial_sidebar_state='expanded',
)

SERVER_URL = os.getenv("RAGBOT_SERVER_URL", "http://localhost:8000").rstrip("/")
RESPONSE_MODE = os.getenv("RESPONSE_MODE", "html").lower()
GREETING = "👋, How may I help you today?"


# ------------------------------------------------------------------------------
# Page consistent settings and initializations:
# ------------------------------------------------------------------------------

class Message:
    role: Literal['assistant', 'user']
    content: str

    def __init__(self, role: Literal['assistant', 'user'], content: str):
        self.role = role
        self.content = content

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


if "initialized" not in st.session_state:

    try:
        if requests.get(f"{SERVER_URL}/", timeout=10).status_code != 200:
            raise requests.RequestException("Bad status")
    except requests.RequestException:
        st.error(
            "Server is not reachable. Please check your connection or server status.", icon="🚫"
        )
        st.stop()

    st.session_state.chat_history = [Message('assistant', GREETING)]
    st.session_state.initialized = True


# ------------------------------------------------------------------------------
# Helper Functions:
# ------------------------------------------------------------------------------

def log_api_call(method: str, endpoint: str, status: int):
    """Report one API call to the server's log table. Failures are only shown, never raised."""
    try:
        requests.post(
            f"{SERVER_URL}/api/logging/api-log",
            json={
                "method": method, "endpoint": endpoint, "status": status,
                "timestamp": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            },
            timeout=10,
        )
    except requests.RequestException as e:
        st.toast(f"Could not log the API call: {e}", icon="⚠️")


def write_as_ai(text: str):
    with st.chat_message(name='assistant', avatar='assistant'):
        if RESPONSE_MODE == "html":
            st.markdown(text, unsafe_allow_html=True)
        else:
            st.markdown(text)


def write_as_human(text: str):
    with st.chat_message(name='user', avatar='user'):
        st.markdown(text)


def ask_server(messages: list[Message]) -> tuple[bool, str]:
    """Send the whole transcript to the server and return its answer.
    Returns:
        tuple: A tuple containing:
            - bool: True if an answer was generated, False otherwise.
            - str: The answer or error message.
    """

    status = 0
    try:
        response = requests.post(
            f"{SERVER_URL}/api/chat",
            json={"messages": [m.to_dict() for m in messages]},
            timeout=180,
        )
        status = response.status_code

        if status == 200:
            return True, response.json().get("text", "")
        return False, response.json().get("error", "Unknown error")

    except requests.RequestException as e:
        return False, str(e)

    finally:
        log_api_call("POST", "/api/chat", status or 503)


def fetch_json(endpoint: str, key: Optional[str] = None):
    try:
        response = requests.get(f"{SERVER_URL}{endpoint}", timeout=30)
        if response.status_code != 200:
            st.error(f"Failed to fetch `{endpoint}`: {response.status_code}", icon="🚫")
            return []
        data = response.json()
        return data.get(key, []) if key else data
    except requests.RequestException as e:
        st.error(f"Error connecting to server: {e}", icon="🚫")
        return []


# ------------------------------------------------------------------------------
# Sidebar:
# ------------------------------------------------------------------------------

st.sidebar.subheader("⚙️ Server")
st.sidebar.caption(f"`{SERVER_URL}`")

if st.sidebar.button("Clear Chat", type="secondary", icon="💬"):
    st.session_state.chat_history = [Message('assistant', GREETING)]
    st.rerun()


# ------------------------------------------------------------------------------
# Main Page:
# ------------------------------------------------------------------------------

st.header(":green[RAG] Chatbot", divider='rainbow')
chat_tab, admin_tab = st.tabs(["💬 Chat", "🛠️ Admin"])

with chat_tab:
    for message in st.session_state.chat_history:
        if message.role == 'user':
            write_as_human(message.content)
        else:
            write_as_ai(message.content)

    if user_message := st.chat_input(placeholder="Enter any queries here...", max_chars=1000):
        st.session_state.chat_history.append(Message('user', user_message))
        write_as_human(user_message)

        with st.spinner("Thinking..."):
            # The greeting is UI only, it is not part of the conversation:
            status, answer = ask_server(st.session_state.chat_history[1:])

        if status:
            st.session_state.chat_history.append(Message('assistant', answer))
            st.rerun()
        else:
            st.session_state.chat_history.pop()
            st.error(f"Error: **{answer}**", icon="🚫")


with admin_tab:
    settings_tab, logs_tab, users_tab = st.tabs(["🤖 Chatbot Settings", "📜 API Logs", "👥 Users"])

    with settings_tab:
        settings = fetch_json("/api/chatbot/settings")
        options = ["➕ New settings"] + [
            f"{row['setting_id']} - {row['name']}{' (active)' if row['is_active'] else ''}"
            for row in settings
        ]
        choice = st.selectbox("Settings", options=options, index=0)
        current = settings[options.index(choice) - 1] if options.index(choice) > 0 else {}

        with st.form("settings_form", clear_on_submit=False):
            name = st.text_input("Name", value=current.get("name", ""))
            collection_name = st.text_input(
                "Collection", value=current.get("collection_name", "my_collection")
            )
            retriever_prompt = st.text_area(
                "Retriever prompt", value=current.get("retriever_prompt", ""), height=150,
                help="How follow-up questions are rewritten into standalone search queries."
            )
            system_prompt = st.text_area(
                "System prompt", value=current.get("system_prompt", ""), height=250,
                help="How answers are written. Use {context} where the retrieved documents go."
            )
            is_active = st.checkbox("Active", value=bool(current.get("is_active", False)))
            if current.get("context_file"):
                st.caption(f"🔗 Current context file: `{current['context_file']}`")
            context_file = st.file_uploader("Context file", type=["txt", "md", "csv", "pdf"])

            submitted = st.form_submit_button("Save", type="primary")

        if submitted:
            if not name or not retriever_prompt or not system_prompt or not collection_name:
                st.error("Please fill all the fields.", icon="🚫")
            else:
                data = {
                    "name": name, "collection_name": collection_name,
                    "retriever_prompt": retriever_prompt, "system_prompt": system_prompt,
                    "is_active": str(is_active).lower(),
                }
                upload = {"context_file": (context_file.name, context_file.getvalue())} if context_file else None
                method = "PUT" if current else "POST"
                if current:
                    data["setting_id"] = current["setting_id"]

                try:
                    with st.spinner("Saving settings..."):
                        resp = requests.request(
                            method, f"{SERVER_URL}/api/chatbot/settings",
                            data=data, files=upload, timeout=600,
                        )
                    log_api_call(method, "/api/chatbot/settings", resp.status_code)

                    if resp.status_code == 200:
                        reloaded = resp.json().get("reloaded", False)
                        st.success(
                            "Settings saved!" + (" The chatbot now uses them." if reloaded else ""), icon="✅"
                        )
                    else:
                        st.error(resp.json().get("error", "Failed to save settings."), icon="🚫")

                except requests.RequestException as e:
                    st.error(f"Error connecting to server: {e}", icon="🚫")

    with logs_tab:
        logs = fetch_json("/api/logging/fetch-logs", key="logs")
        c1, c2 = st.columns(2)
        methods = c1.multiselect("Method", options=sorted({row["method"] for row in logs}))
        statuses = c2.multiselect("Status", options=sorted({row["status"] for row in logs}))

        filtered = [
            row for row in logs
            if (not methods or row["method"] in methods) and (not statuses or row["status"] in statuses)
        ]
        st.caption(f"Showing {len(filtered)} of {len(logs)} logs.")
        st.dataframe(filtered, use_container_width=True, hide_index=True)

    with users_tab:
        users = fetch_json("/api/auth/user-actions/fetch", key="users")
        if not users:
            st.info("No admin users found.", icon="ℹ️")
        else:
            st.dataframe(users, use_container_width=True, hide_index=True)
