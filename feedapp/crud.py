from .models import AsyncSessionLocal
from .models.users import User
from .models.posts import Post
from passlib.context import CryptContext
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload

pwd_ctx = CryptContext(schemes=['pbkdf2_sha256'], deprecated='auto')


# users
async def create_user(email: str, name: str, password: str):
    async with AsyncSessionLocal() as session:
        user = User(email=email, name=name, hashed_password=pwd_ctx.hash(password))
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

async def get_user_by_email(email: str):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.email == email))
        return q.scalars().first()

async def get_user_by_id(user_id: int):
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).options(selectinload(User.posts)).where(User.id == user_id))
        return q.scalars().first()

async def authenticate_user(email: str, password: str):
    user = await get_user_by_email(email)
    if not user or not pwd_ctx.verify(password, user.hashed_password):
        return None
    return user


# posts
async def _load_post(session, post_id: int):
    q = await session.execute(
        select(Post)
        .options(selectinload(Post.creator))
        .where(Post.id == post_id)
        .execution_options(populate_existing=True)
    )
    return q.scalars().first()

async def count_posts() -> int:
    async with AsyncSessionLocal() as session:
        res = await session.execute(select(func.count()).select_from(Post))
        return res.scalar_one()

async def list_posts(offset: int, limit: int):
    async with AsyncSessionLocal() as session:
        q = (
            select(Post)
            .options(selectinload(Post.creator))
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(offset)
            .limit(limit)
        )
        res = await session.execute(q)
        return res.scalars().all()

async def get_post(post_id: int):
    async with AsyncSessionLocal() as session:
        return await _load_post(session, post_id)

async def create_post(user_id: int, title: str, content: str, image_url: str):
    """Save a post and append it to its creator's posts in one transaction.

    Returns None when the creator does not exist; nothing is written then.
    """
    async with AsyncSessionLocal() as session:
        async with session.begin():
            q = await session.execute(select(User).options(selectinload(User.posts)).where(User.id == user_id))
            user = q.scalars().first()
            if not user:
                return None
            post = Post(title=title, content=content, image_url=image_url)
            user.posts.append(post)
        return await _load_post(session, post.id)

async def update_post(post_id: int, title: str, content: str, image_url: str):
    async with AsyncSessionLocal() as session:
        async with session.begin():
            post = await session.get(Post, post_id)
            if not post:
                return None
            post.title = title
            post.content = content
            post.image_url = image_url
        return await _load_post(session, post_id)

async def delete_post(post_id: int) -> bool:
    """Remove a post and pull it from its owner's posts in one transaction"""
    async with AsyncSessionLocal() as session:
        async with session.begin():
            post = await session.get(Post, post_id)
            if not post:
                return False
            q = await session.execute(select(User).options(selectinload(User.posts)).where(User.id == post.creator_id))
            owner = q.scalars().first()
            if owner is not None and post in owner.posts:
                # delete-orphan cascade removes the row on flush
                owner.posts.remove(post)
            else:
                await session.delete(post)
        return True
