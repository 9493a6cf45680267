"""
Feed page - read-only list of all posts with their images.
"""

import streamlit as st
from dotenv import load_dotenv

from blogapi import db
from blogapi.auth import render_logout, require_auth
from blogapi.logging_config import setup_logging
from blogapi.posts import list_posts, post_response
from blogapi.storage import default_store

load_dotenv()
setup_logging()
db.init_db()

username = require_auth()
st.title("📰 Fil des articles")

with st.sidebar:
    render_logout()
    st.caption(f"Connecté: {username}")

store = default_store()
limit = st.slider("Nombre d'articles", min_value=10, max_value=500, value=100, step=10)

posts = list_posts(limit)
if not posts:
    st.info("Aucun article publié.")

for post in posts:
    view = post_response(post, store)
    with st.container(border=True):
        st.subheader(view["title"])
        st.caption(f"par {view['author_id']} · {view['created_at'][:16].replace('T', ' ')}")
        if post.has_image:
            if store.is_local(post.attachment.reference):
                # Serve from disk; the public URL only works behind the static server
                try:
                    st.image(
                        str(store.resolve_path(post.attachment.reference)),
                        caption=view["image_alt_text"] or None,
                    )
                except ValueError:
                    st.warning("Image introuvable.")
            else:
                st.image(view["image_url"], caption=view["image_alt_text"] or None)
        st.write(view["content"])
        with st.expander("JSON"):
            st.json(view)
