import logging
from fastapi import APIRouter
from ..schemas.users import SignupIn, LoginIn, SignupOut, TokenOut
from ..crud import create_user, get_user_by_email, authenticate_user
from ..auth import create_access_token
from ..errors import FeedError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.put('/signup', response_model=SignupOut, status_code=201)
async def signup(payload: SignupIn):
    if await get_user_by_email(payload.email):
        raise FeedError(422, 'Validation failed.', [{'field': 'email', 'msg': 'E-Mail address already exists!'}])
    user = await create_user(payload.email, payload.name, payload.password)
    logger.info({'msg': 'user_created', 'user_id': user.id})
    return SignupOut(message='User created!', user_id=user.id)


@router.post('/login', response_model=TokenOut)
async def login(payload: LoginIn):
    user = await authenticate_user(payload.email, payload.password)
    if not user:
        raise FeedError(401, 'Wrong email or password.')
    token = create_access_token({'id': user.id, 'email': user.email})
    return TokenOut(token=token, user_id=user.id)
