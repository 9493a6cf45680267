"""
My posts page - create, edit, and delete the current user's posts.

SECURITY:
- Every mutation passes the logged-in username as owner id
- Uploaded images are validated (size, extension, MIME, signature)
- Audit logging for all operations
"""

import logging
import uuid

import streamlit as st
from dotenv import load_dotenv

from blogapi import db
from blogapi.auth import get_session_id, render_logout, require_auth
from blogapi.errors import AttachmentError, NotFoundOrForbidden, ValidationRejected
from blogapi.image_validation import ALLOWED_EXTENSIONS
from blogapi.logging_config import setup_logging
from blogapi.posts import (
    create_post,
    delete_post,
    list_my_posts,
    remove_image,
    replace_image,
    update_post,
)
from blogapi.settings import settings
from blogapi.storage import default_store
from blogapi.uploads import StreamUpload

load_dotenv()
setup_logging()
db.init_db()

logger = logging.getLogger(__name__)

username = require_auth()
st.title("✍️ Mes articles")

with st.sidebar:
    render_logout()
    st.caption(f"Connecté: {username}")

session_id = get_session_id()
store = default_store()
upload_types = sorted(ext.lstrip(".") for ext in ALLOWED_EXTENSIONS)

if "post_flash" in st.session_state:
    st.success(st.session_state.pop("post_flash"))


def _flash_and_rerun(message: str) -> None:
    st.session_state["post_flash"] = message
    st.rerun()


def _show_image(post) -> None:
    a = post.attachment
    if a is None:
        return
    if store.is_local(a.reference):
        try:
            st.image(str(store.resolve_path(a.reference)), caption=post.image_alt_text or None)
        except ValueError:
            st.warning("Image introuvable.")
    else:
        st.image(a.reference, caption=post.image_alt_text or None)


# New post form - key changes after success to clear the uploader
form_key = st.session_state.get("new_post_key", "new_post_0")
with st.form(form_key, clear_on_submit=False):
    st.subheader("Nouvel article")
    title = st.text_input("Titre")
    content = st.text_area("Contenu")
    uploaded = st.file_uploader(
        f"Image ({', '.join(upload_types)}, max {settings.max_upload_bytes // 1024 // 1024} MB)",
        type=upload_types,
    )
    image_url = st.text_input("…ou URL d'une image externe")
    alt_text = st.text_input("Texte alternatif")
    submitted = st.form_submit_button("Publier")

if submitted:
    if not title.strip() or not content.strip():
        st.error("❌ Titre et contenu requis.")
    else:
        try:
            post = create_post(
                username,
                title.strip(),
                content,
                image=StreamUpload.from_streamlit(uploaded) if uploaded else None,
                image_url=image_url.strip() or None,
                image_alt_text=alt_text.strip() or None,
                session_id=session_id,
            )
            st.session_state["new_post_key"] = f"new_post_{uuid.uuid4().hex[:8]}"
            _flash_and_rerun(f"✅ Article #{post.id} publié")
        except ValidationRejected as e:
            st.error(f"❌ Image refusée : {e.message}")
        except ValueError as e:
            st.error(f"❌ {e}")
        except AttachmentError as e:
            logger.exception("Post creation failed", extra={"error_code": "POST_CREATE_ERROR"})
            st.error(f"❌ Erreur d'enregistrement de l'image, réessaie. ({e})")

st.divider()
st.subheader("Articles existants")

posts = list_my_posts(username)
if not posts:
    st.info("Aucun article pour le moment.")

for post in posts:
    with st.container(border=True):
        col1, col2 = st.columns([0.7, 0.3])
        with col1:
            st.write(f"**{post.title}**")
            st.write(post.content)
            _show_image(post)
            if post.has_image:
                with st.expander("Détails image"):
                    st.code(
                        f"Référence: {post.attachment.reference}\n"
                        f"Fichier: {post.attachment.original_filename or '-'}\n"
                        f"Type: {post.attachment.content_type or '-'}\n"
                        f"Taille: {post.attachment.size_bytes or '-'} bytes"
                    )
        with col2:
            new_image = st.file_uploader(
                "Remplacer l'image", type=upload_types, key=f"img_{post.id}"
            )
            if new_image is not None and st.button(
                "🔁 Remplacer", key=f"replace_{post.id}", use_container_width=True
            ):
                try:
                    replace_image(
                        post.id,
                        username,
                        StreamUpload.from_streamlit(new_image),
                        session_id=session_id,
                    )
                    _flash_and_rerun("✅ Image remplacée")
                except ValidationRejected as e:
                    st.error(f"❌ Image refusée : {e.message}")
                except NotFoundOrForbidden:
                    st.error("❌ Article introuvable.")
                except AttachmentError as e:
                    st.error(f"❌ Erreur d'enregistrement de l'image, réessaie. ({e})")

            if post.has_image and st.button(
                "🖼️ Retirer l'image", key=f"detach_{post.id}", use_container_width=True
            ):
                try:
                    remove_image(post.id, username, session_id=session_id)
                    _flash_and_rerun("✅ Image retirée")
                except NotFoundOrForbidden:
                    st.error("❌ Article introuvable.")

            if st.button("🗑️ Supprimer", key=f"del_{post.id}", use_container_width=True):
                try:
                    delete_post(post.id, username, session_id=session_id)
                    _flash_and_rerun("✅ Article supprimé")
                except NotFoundOrForbidden:
                    st.error("❌ Article introuvable.")

        with st.expander("✏️ Modifier"):
            with st.form(f"edit_{post.id}"):
                new_title = st.text_input("Titre", value=post.title)
                new_content = st.text_area("Contenu", value=post.content)
                new_alt = st.text_input("Texte alternatif", value=post.image_alt_text or "")
                current_url = (
                    post.attachment.reference
                    if post.attachment is not None and not store.is_local(post.attachment.reference)
                    else ""
                )
                new_url = st.text_input("URL d'image externe", value=current_url)
                if st.form_submit_button("Enregistrer"):
                    try:
                        update_post(
                            post.id,
                            username,
                            title=new_title.strip() or None,
                            content=new_content or None,
                            image_alt_text=new_alt.strip(),
                            # Only touch the image when the URL field was edited
                            image_url=new_url.strip() if new_url.strip() != current_url else None,
                            session_id=session_id,
                        )
                        _flash_and_rerun("✅ Article modifié")
                    except ValidationRejected as e:
                        st.error(f"❌ {e.message}")
                    except NotFoundOrForbidden:
                        st.error("❌ Article introuvable.")
