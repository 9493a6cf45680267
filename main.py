import streamlit as st
from dotenv import load_dotenv

from blogapi.app_info import AppInfo, capture_app_info, log_startup
from blogapi.auth import render_logout, require_auth
from blogapi.db import init_db
from blogapi.logging_config import setup_logging
from blogapi.settings import settings

load_dotenv()
setup_logging()
init_db()


@st.cache_resource
def app_info() -> AppInfo:
    # Captured once per process, shared by every session
    info = capture_app_info()
    log_startup(info)
    return info


info = app_info()

st.set_page_config(page_title="Mon Blog", page_icon="📝", layout="wide")
username = require_auth()

st.title("📝 Mon Blog")

with st.sidebar:
    render_logout()
    st.caption(f"Connecté: {username}")

st.markdown(
    f"""
Blog avec **images jointes** aux articles.

- Va dans **My posts** pour créer, modifier ou supprimer tes articles
- Puis dans **Feed** pour voir tous les articles publiés

### Images

- Formats acceptés : JPEG, PNG, GIF, WEBP
- Taille max : {settings.max_upload_bytes // 1024 // 1024} MB
- Le contenu du fichier est vérifié (signature), pas seulement l'extension
"""
)

with st.expander("🩺 État du service", expanded=False):
    st.json(info.health())
