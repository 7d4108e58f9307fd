import asyncio
import os

import aiohttp

# Run against a live server with a real LDraw library: python server.py
HTTP_BASE = os.environ.get("LDRAW_PACKER_URL", "http://localhost:3000")

# Brick 2 x 4 and a plate; both ship with every complete library.
MODEL = (
    "0 FILE smoke.ldr\n"
    "0 Smoke model\n"
    "1 4 0 0 0 1 0 0 0 1 0 0 0 1 3001.dat\n"
    "1 1 0 -24 0 1 0 0 0 1 0 0 0 1 3020.dat\n"
)

MISSING_MODEL = (
    "1 4 0 0 0 1 0 0 0 1 0 0 0 1 no_such_part_x.dat\n"
    "1 4 0 0 0 1 0 0 0 1 0 0 0 1 no_such_part_y.dat\n"
)


async def main():
    async with aiohttp.ClientSession() as sess:
        # 1) Health: library must be provisioned
        r = await sess.get(f"{HTTP_BASE}/health")
        assert r.status == 200, (r.status, await r.text())
        health = await r.json()
        print("health:", health)
        assert health["ldrawExists"] is True, "library not provisioned"

        # 2) Raw body
        r = await sess.post(
            f"{HTTP_BASE}/pack",
            data=MODEL.encode("utf-8"),
            headers={"Content-Type": "text/plain", "X-Filename": "smoke.ldr"},
        )
        assert r.status == 200, (r.status, await r.text())
        body = await r.json()
        assert body["packedFileName"] == "smoke.ldr_Packed.mpd"
        packed = body["packedContent"]
        assert "0 FILE parts/3001.dat" in packed, "3001.dat not embedded"
        assert packed.index("0 Smoke model") < packed.index("0 FILE parts/3001.dat"), "root not first"
        print("raw body pack:", len(packed), "chars")

        # 3) Multipart upload
        form = aiohttp.FormData()
        form.add_field("model", MODEL.encode("utf-8"), filename="upload.ldr", content_type="text/plain")
        r = await sess.post(f"{HTTP_BASE}/pack", data=form)
        assert r.status == 200, (r.status, await r.text())
        body = await r.json()
        assert body["fileName"] == "upload.ldr"
        print("multipart pack:", len(body["packedContent"]), "chars")

        # 4) Missing references are reported together
        r = await sess.post(f"{HTTP_BASE}/pack", data=MISSING_MODEL.encode("utf-8"))
        assert r.status == 422, (r.status, await r.text())
        body = await r.json()
        assert body["missing"] == ["no_such_part_x.dat", "no_such_part_y.dat"], body
        print("missing references:", body["missing"])

    print("OK: smoke test passed.")

if __name__ == "__main__":
    asyncio.run(main())
