"""
Tests for the social routes: profile, feed, friends and messages
"""

from fellis.models.friendship import Friendship


class TestAuthentication:
    async def test_feed_requires_session(self, client):
        response = await client.get("/api/feed")

        assert response.status_code == 401
        assert response.json()["error"]["path"] == "/api/feed"

    async def test_messages_require_session(self, client):
        response = await client.post("/api/messages/1", json={"text": "hej"})
        assert response.status_code == 401


class TestProfileRoutes:
    async def test_own_profile(self, client, test_user, session_headers):
        response = await client.get("/api/profile", headers=await session_headers(test_user))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_user.id
        assert data["name"] == "Test User"
        assert data["friend_count"] == 0
        assert data["post_count"] == 0

    async def test_other_profile(self, client, test_user, make_user, session_headers):
        other = await make_user("Freja")

        response = await client.get(f"/api/profile/{other.id}", headers=await session_headers(test_user))

        assert response.status_code == 200
        assert response.json()["name"] == "Freja"

    async def test_unknown_profile(self, client, test_user, session_headers):
        response = await client.get("/api/profile/999", headers=await session_headers(test_user))

        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "RESOURCE_USER_NOT_FOUND"


class TestFeedRoutes:
    async def test_post_like_comment_flow(self, client, test_user, make_user, session_headers):
        headers = await session_headers(test_user)
        reader = await make_user("Reader")
        reader_headers = await session_headers(reader)

        created = await client.post("/api/feed", json={"text": "Første opslag"}, headers=headers)
        assert created.status_code == 201
        post_id = created.json()["id"]

        liked = await client.post(f"/api/feed/{post_id}/like", headers=reader_headers)
        assert liked.json() == {"liked": True, "likes": 1}

        comment = await client.post(f"/api/feed/{post_id}/comment", json={"text": "Flot!"}, headers=reader_headers)
        assert comment.status_code == 201
        assert comment.json()["author"] == "Reader"

        feed = (await client.get("/api/feed", headers=reader_headers)).json()
        assert feed["total"] == 1
        assert feed["page"] == 1
        post = feed["posts"][0]
        assert post["text"] == "Første opslag"
        assert post["liked"] is True
        assert post["likes"] == 1
        assert [c["text"] for c in post["comments"]] == ["Flot!"]

        unliked = await client.post(f"/api/feed/{post_id}/like", headers=reader_headers)
        assert unliked.json() == {"liked": False, "likes": 0}

    async def test_paging(self, client, test_user, session_headers):
        headers = await session_headers(test_user)
        for n in range(3):
            await client.post("/api/feed", json={"text": f"post {n}"}, headers=headers)

        first = (await client.get("/api/feed?page=1&limit=2", headers=headers)).json()
        second = (await client.get("/api/feed?page=2&limit=2", headers=headers)).json()

        assert first["total"] == 3
        assert [p["text"] for p in first["posts"]] == ["post 2", "post 1"]
        assert [p["text"] for p in second["posts"]] == ["post 0"]

    async def test_invalid_paging_rejected(self, client, test_user, session_headers):
        response = await client.get("/api/feed?page=0", headers=await session_headers(test_user))
        assert response.status_code == 422

    async def test_blank_post_rejected(self, client, test_user, session_headers):
        response = await client.post("/api/feed", json={"text": "   "}, headers=await session_headers(test_user))

        assert response.status_code == 400
        assert response.json()["error"]["error_code"] == "VALIDATION_FAILED"

    async def test_like_missing_post(self, client, test_user, session_headers):
        response = await client.post("/api/feed/999/like", headers=await session_headers(test_user))

        assert response.status_code == 404
        assert response.json()["error"]["error_code"] == "RESOURCE_NOT_FOUND"

    async def test_comment_on_missing_post(self, client, test_user, session_headers):
        response = await client.post(
            "/api/feed/999/comment", json={"text": "hello"}, headers=await session_headers(test_user)
        )
        assert response.status_code == 404


class TestFriendRoutes:
    async def test_list_friends(self, client, test_user, make_user, session_factory, session_headers):
        friend = await make_user("Astrid")
        async with session_factory() as session:
            session.add_all(
                [
                    Friendship(user_id=test_user.id, friend_id=friend.id, mutual_count=2),
                    Friendship(user_id=friend.id, friend_id=test_user.id, mutual_count=2),
                ]
            )
            await session.commit()

        response = await client.get("/api/friends", headers=await session_headers(test_user))

        assert response.status_code == 200
        assert response.json() == [
            {"id": friend.id, "name": "Astrid", "avatar_url": None, "mutual": 2, "online": False, "source": None}
        ]


class TestMessageRoutes:
    async def test_send_list_and_read(self, client, test_user, make_user, session_headers):
        friend = await make_user("Magnus")
        headers = await session_headers(test_user)
        friend_headers = await session_headers(friend)

        sent = await client.post(f"/api/messages/{test_user.id}", json={"text": "Hej!"}, headers=friend_headers)
        assert sent.status_code == 201
        assert sent.json()["sender_id"] == friend.id

        threads = (await client.get("/api/messages", headers=headers)).json()
        assert len(threads) == 1
        assert threads[0]["friend_id"] == friend.id
        assert threads[0]["friend"] == "Magnus"
        assert threads[0]["unread"] == 1
        assert [m["text"] for m in threads[0]["messages"]] == ["Hej!"]

        read = await client.post(f"/api/messages/{friend.id}/read", headers=headers)
        assert read.json() == {"marked_read": 1}
        threads = (await client.get("/api/messages", headers=headers)).json()
        assert threads[0]["unread"] == 0

    async def test_message_to_self_rejected(self, client, test_user, session_headers):
        response = await client.post(
            f"/api/messages/{test_user.id}", json={"text": "hej"}, headers=await session_headers(test_user)
        )
        assert response.status_code == 400

    async def test_message_to_unknown_user(self, client, test_user, session_headers):
        response = await client.post(
            "/api/messages/999", json={"text": "hej"}, headers=await session_headers(test_user)
        )
        assert response.status_code == 404
