class TestUploads:
    def test_single_upload(self, client, customer, storage):
        response = client.post(
            "/api/upload/file",
            files={"file": ("drill.png", b"\x89PNG fake image", "image/png")},
            headers=customer["headers"],
        )

        assert response.status_code == 200, response.text
        assert response.json()["file"]["public_id"] == "uploads/drill"
        assert storage.uploaded == [("drill.png", 15)]

    def test_requires_login(self, client):
        response = client.post("/api/upload/file", files={"file": ("a.png", b"x", "image/png")})
        assert response.status_code == 401

    def test_disallowed_extension(self, client, customer, storage):
        response = client.post(
            "/api/upload/file",
            files={"file": ("script.exe", b"MZ", "application/octet-stream")},
            headers=customer["headers"],
        )
        assert response.status_code == 400
        assert "not allowed" in response.json()["message"]
        assert storage.uploaded == []

    def test_size_measured_from_content(self, client, customer, storage):
        response = client.post(
            "/api/upload/file",
            files={"file": ("big.jpg", b"x" * (storage.max_file_size + 1), "image/jpeg")},
            headers=customer["headers"],
        )
        assert response.status_code == 400

    def test_empty_file(self, client, customer):
        response = client.post(
            "/api/upload/file", files={"file": ("empty.jpg", b"", "image/jpeg")}, headers=customer["headers"]
        )
        assert response.status_code == 400

    def test_multiple_files_all_or_nothing(self, client, customer, storage):
        response = client.post(
            "/api/upload/files",
            files=[
                ("files", ("a.jpg", b"one", "image/jpeg")),
                ("files", ("b.txt", b"two", "text/plain")),
            ],
            headers=customer["headers"],
        )
        assert response.status_code == 400
        assert storage.uploaded == []

    def test_multiple_files(self, client, customer):
        response = client.post(
            "/api/upload/files",
            files=[
                ("files", ("a.jpg", b"one", "image/jpeg")),
                ("files", ("b.webp", b"two", "image/webp")),
            ],
            headers=customer["headers"],
        )
        assert response.json()["count"] == 2

    def test_urls_for_nested_public_id(self, client, customer):
        body = client.get("/api/upload/file/products/drill/urls?width=400&height=300", headers=customer["headers"]).json()

        urls = body["urls"]
        assert body["public_id"] == "products/drill"
        assert urls["original"] == "https://res.cloudinary.com/demo-cloud/image/upload/products/drill"
        assert urls["thumbnail"] == (
            "https://res.cloudinary.com/demo-cloud/image/upload/c_fill,g_auto,h_300,w_300/products/drill"
        )
        assert "h_300" in urls["custom"] and "w_400" in urls["custom"]
        assert set(urls["responsive"]) == {"xs", "sm", "md", "lg", "xl"}

    def test_info_and_delete(self, client, customer, storage):
        info = client.get("/api/upload/file/products/drill", headers=customer["headers"])
        deleted = client.delete("/api/upload/file/products/drill", headers=customer["headers"])

        assert info.json()["file"]["public_id"] == "products/drill"
        assert deleted.json()["public_id"] == "products/drill"
        assert storage.destroyed == ["products/drill"]
