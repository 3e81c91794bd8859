import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from pydantic import ValidationError
from starlette.datastructures import UploadFile as StarletteUploadFile
from .. import core, crud
from ..auth import get_current_user
from ..errors import FeedError, validation_failed
from ..file_storage import file_storage
from ..schemas.posts import (
    PostIn,
    PostOut,
    CreatorOut,
    PostsPageOut,
    PostEnvelopeOut,
    PostCreatedOut,
    MessageOut,
)
from ..ws_manager import FeedPublisher, get_publisher

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_page(page: Optional[str]) -> int:
    try:
        return int(page) if page else 1
    except ValueError:
        return 1


def validate_post_fields(title, content) -> PostIn:
    try:
        return PostIn(title=title, content=content)
    except ValidationError as e:
        raise validation_failed(e.errors())


async def read_post_payload(request: Request) -> dict:
    """Accept the update body either as a multipart/urlencoded form or as JSON"""
    content_type = request.headers.get('content-type', '')
    if content_type.startswith(('multipart/form-data', 'application/x-www-form-urlencoded')):
        form = await request.form()
        image = form.get('image')
        return {
            'title': form.get('title'),
            'content': form.get('content'),
            'image': image if isinstance(image, str) else None,
            'upload': image if isinstance(image, StarletteUploadFile) else None,
        }
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    image = body.get('image')
    return {
        'title': body.get('title'),
        'content': body.get('content'),
        'image': image if isinstance(image, str) else None,
        'upload': None,
    }


@router.get('/posts', response_model=PostsPageOut)
async def get_posts(
    page: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user)
):
    current_page = parse_page(page)
    per_page = core.POSTS_PER_PAGE
    total_items = await crud.count_posts()
    offset = max(current_page - 1, 0) * per_page
    # past the last post: skip the query, the offset may not fit a DB integer
    posts = await crud.list_posts(offset, per_page) if offset < total_items else []
    return PostsPageOut(
        message='Posts fetched',
        posts=[PostOut.model_validate(p) for p in posts],
        total_items=total_items,
    )


@router.post('/post', response_model=PostCreatedOut, status_code=201)
async def create_post(
    title: Optional[str] = Form(None),
    content: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    publisher: FeedPublisher = Depends(get_publisher)
):
    fields = validate_post_fields(title, content)
    image_url = await file_storage.save_post_image(image)
    if not image_url:
        raise FeedError(422, 'No image found')

    try:
        post = await crud.create_post(current_user['id'], fields.title, fields.content, image_url)
    except Exception:
        await file_storage.clear_image(image_url)
        raise
    if post is None:
        await file_storage.clear_image(image_url)
        raise FeedError(404, 'Could not find user.')

    out = PostOut.model_validate(post)
    await publisher.emit('posts', {'action': 'create', 'post': out.as_event()})
    logger.info({'msg': 'post_created', 'post_id': post.id, 'user_id': current_user['id']})

    return PostCreatedOut(
        message='Post created successfully!',
        post=out,
        creator=CreatorOut.model_validate(post.creator),
    )


@router.get('/post/{post_id}', response_model=PostEnvelopeOut)
async def get_post(post_id: int, current_user: dict = Depends(get_current_user)):
    post = await crud.get_post(post_id)
    if not post:
        raise FeedError(404, 'No post found.')
    return PostEnvelopeOut(message='Post fetched', post=PostOut.model_validate(post))


@router.put('/post/{post_id}', response_model=PostEnvelopeOut)
async def update_post(
    post_id: int,
    payload: dict = Depends(read_post_payload),
    current_user: dict = Depends(get_current_user),
    publisher: FeedPublisher = Depends(get_publisher)
):
    fields = validate_post_fields(payload['title'], payload['content'])
    image_url = payload['image']
    uploaded = await file_storage.save_post_image(payload['upload'])
    if uploaded:
        image_url = uploaded
    if not image_url:
        raise FeedError(422, 'No file picked')

    post = await crud.get_post(post_id)
    if not post:
        await file_storage.clear_image(uploaded)
        raise FeedError(404, 'No post found.')
    if post.creator_id != current_user['id']:
        await file_storage.clear_image(uploaded)
        raise FeedError(403, 'Not Authorized.')

    old_image_url = post.image_url
    updated = await crud.update_post(post_id, fields.title, fields.content, image_url)
    if updated is None:
        await file_storage.clear_image(uploaded)
        raise FeedError(404, 'No post found.')
    if image_url != old_image_url:
        await file_storage.clear_image(old_image_url)

    out = PostOut.model_validate(updated)
    await publisher.emit('posts', {'action': 'update', 'post': out.as_event()})
    logger.info({'msg': 'post_updated', 'post_id': post_id, 'user_id': current_user['id']})
    return PostEnvelopeOut(message='Post updated', post=out)


@router.delete('/post/{post_id}', response_model=MessageOut)
async def delete_post(
    post_id: int,
    current_user: dict = Depends(get_current_user),
    publisher: FeedPublisher = Depends(get_publisher)
):
    post = await crud.get_post(post_id)
    if not post:
        raise FeedError(404, 'No post found.')
    if post.creator_id != current_user['id']:
        raise FeedError(403, 'Not Authorized.')

    if not await crud.delete_post(post_id):
        raise FeedError(404, 'No post found.')
    await file_storage.clear_image(post.image_url)

    await publisher.emit('posts', {'action': 'delete', 'post': post_id})
    logger.info({'msg': 'post_deleted', 'post_id': post_id, 'user_id': current_user['id']})
    return MessageOut(message='Post deleted.')
