import os

import requests
import streamlit as st

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:3000")

st.set_page_config(page_title="🎬 FrameFusion", layout="centered")

st.title("🎬 FrameFusion")
st.caption("이미지/오디오/영상을 합쳐서 mp4로 만들어 줍니다. 파일 업로드 또는 URL 둘 중 하나면 OK")


def _file(name: str, upload):
    return (name, (upload.name, upload.getvalue(), upload.type))


def _post(path: str, files: list, data: dict) -> None:
    with st.spinner("영상 생성 중... (수 초~수십 초)"):
        try:
            r = requests.post(f"{API_BASE}{path}", files=files or None, data=data, timeout=600)
        except requests.RequestException as e:
            st.error(f"요청 실패: {e}")
            return

    if r.status_code != 200:
        try:
            body = r.json()
        except ValueError:
            body = {"error": r.text}
        st.error(body.get("error", "요청 실패"))
        if body.get("details"):
            st.code(body["details"])
        return

    st.success("완료!")
    st.video(r.content)
    st.download_button("결과 영상 다운로드", r.content, file_name=f"{path.strip('/')}.mp4", mime="video/mp4")


tab_ia, tab_ss, tab_cc, tab_va = st.tabs(["이미지+오디오", "슬라이드쇼", "영상 이어붙이기", "영상+오디오"])

with tab_ia:
    image = st.file_uploader("이미지", type=["jpg", "jpeg", "png", "webp"], key="ia_image")
    image_url = st.text_input("또는 이미지 URL", key="ia_image_url")
    audio = st.file_uploader("오디오", type=["mp3", "wav", "m4a", "aac"], key="ia_audio")
    audio_url = st.text_input("또는 오디오 URL", key="ia_audio_url")
    if st.button("🎬 만들기", key="ia_go", type="primary"):
        files = []
        if image:
            files.append(_file("image", image))
        if audio:
            files.append(_file("audio", audio))
        _post("/image-audio", files, {"imageUrl": image_url.strip(), "audioUrl": audio_url.strip()})

with tab_ss:
    images = st.file_uploader(
        "이미지 (여러 장, 최대 20장)",
        type=["jpg", "jpeg", "png", "webp"],
        accept_multiple_files=True,
        key="ss_images",
    )
    image_urls = st.text_area("또는/추가 이미지 URL (줄마다 하나)", key="ss_urls")
    duration = st.number_input("장당 초", min_value=0.5, max_value=30.0, value=3.0, step=0.5)
    if st.button("🎬 만들기", key="ss_go", type="primary"):
        files = [_file("images", img) for img in images or []]
        urls = ",".join(u.strip() for u in image_urls.splitlines() if u.strip())
        _post("/slideshow", files, {"imageUrls": urls, "duration": str(duration)})

with tab_cc:
    video1 = st.file_uploader("첫 번째 영상", type=["mp4", "mov", "mkv", "webm"], key="cc_v1")
    video1_url = st.text_input("또는 첫 번째 영상 URL", key="cc_v1_url")
    video2 = st.file_uploader("두 번째 영상", type=["mp4", "mov", "mkv", "webm"], key="cc_v2")
    video2_url = st.text_input("또는 두 번째 영상 URL", key="cc_v2_url")
    if st.button("🎬 만들기", key="cc_go", type="primary"):
        files = []
        if video1:
            files.append(_file("video1", video1))
        if video2:
            files.append(_file("video2", video2))
        _post("/concat-videos", files, {"video1Url": video1_url.strip(), "video2Url": video2_url.strip()})

with tab_va:
    video = st.file_uploader("영상", type=["mp4", "mov", "mkv", "webm"], key="va_video")
    video_url = st.text_input("또는 영상 URL", key="va_video_url")
    audio = st.file_uploader("오디오", type=["mp3", "wav", "m4a", "aac"], key="va_audio")
    audio_url = st.text_input("또는 오디오 URL", key="va_audio_url")
    mode = st.radio("모드", ["replace", "background"], horizontal=True, help="replace: 원본 오디오 교체 / background: 배경음으로 섞기")
    if st.button("🎬 만들기", key="va_go", type="primary"):
        files = []
        if video:
            files.append(_file("video", video))
        if audio:
            files.append(_file("audio", audio))
        _post("/video-audio", files, {"videoUrl": video_url.strip(), "audioUrl": audio_url.strip(), "mode": mode})
